"""Progress texts, elapsed-time formatting and completion messages."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass

_ELAPSED_TIME = "Elapsed Time:"
_PROCESSING = "Processing"
_POST_PROCESSING = "Post Processing"
_DOTS = " ..."
_DOTS_LIMIT = 16
_INTEGER = re.compile(r"\s*[+-]?\d+\s*")


@dataclass(frozen=True)
class FinishedState:
    """How a download ended and how long it ran, in milliseconds."""

    success: bool
    cancelled: bool
    duration: int


def _now_ms() -> int:
    return int(time.time() * 1000)


def timer_text() -> str:
    """The prefix of every elapsed-time line."""
    return f"{_ELAPSED_TIME} "


def is_timer_text(line: str) -> bool:
    return line.startswith(timer_text())


def start_timer_text() -> str:
    return f"{_ELAPSED_TIME} 00:00:00"


def duration(milliseconds: int) -> str:
    """Format a millisecond count as hh:mm:ss; empty when out of a day's range."""
    if milliseconds < 0:
        return ""
    seconds, _ = divmod(milliseconds, 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 23:
        return ""
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def string_elapsed_time(milliseconds: int) -> str:
    if milliseconds <= 0:
        return start_timer_text()
    return f"{_ELAPSED_TIME} {duration(milliseconds)}"


def _to_int(text: str) -> int:
    if _INTEGER.fullmatch(text):
        return int(text)
    return 0


def to_seconds(text: str) -> int:
    """Convert "Nm", "h:m:s", "h:m" or "h" into seconds; 0 when unrecognised."""
    if text.endswith("m"):
        return 60 * _to_int(text.replace("m", ""))

    parts = [part for part in text.split(":") if part]
    if len(parts) == 3:
        return 3600 * _to_int(parts[0]) + 60 * _to_int(parts[1]) + _to_int(parts[2])
    if len(parts) == 2:
        return 3600 * _to_int(parts[0]) + 360 * _to_int(parts[1])
    if len(parts) == 1:
        return 3600 * _to_int(parts[0])
    return 0


class Timer:
    """Measures the time since it was created."""

    def __init__(self) -> None:
        self._start = _now_ms()

    def elapsed_time(self) -> int:
        return _now_ms() - self._start

    def string_elapsed_time(self) -> str:
        return string_elapsed_time(self.elapsed_time())


def pre_processing_text() -> str:
    return _PROCESSING


def post_processing_text() -> str:
    return _POST_PROCESSING


class _DottedText:
    def __init__(self, default_text: str) -> None:
        self._default = default_text
        self._counter = 0
        self._dots = ""

    def _advance(self) -> str:
        if self._counter < _DOTS_LIMIT:
            self._dots += _DOTS
        else:
            self._dots = _DOTS
            self._counter = 0
        self._counter += 1
        return self._default + self._dots


class PreProcessing(_DottedText):
    """An animated "Processing ..." text shown before progress is known."""

    def __init__(self, default_text: str | None = None) -> None:
        super().__init__(pre_processing_text() if default_text is None else default_text)

    def text(self, prefix: str | None = None) -> str:
        body = self._advance()
        return body if prefix is None else f"{prefix}\n{body}"


class PostProcessing(_DottedText):
    """An animated "Post Processing ..." text shown after downloading."""

    def __init__(self, default_text: str | None = None) -> None:
        super().__init__(post_processing_text() if default_text is None else default_text)

    def text(self, prefix: str) -> str:
        return f"{prefix}\n{self._advance()}"


def process_complete_state_text(state: FinishedState) -> str:
    if state.cancelled:
        return "Download cancelled"
    if state.success:
        return "Download completed"
    return "Download Failed"


def update_text_on_complete_download(
    ui_text: str, download_options: str, state: FinishedState
) -> str:
    """The text shown for a finished download."""
    status = process_complete_state_text(state)
    elapsed = string_elapsed_time(state.duration)
    if not download_options or state.success:
        return f"{status}, {elapsed}\n{ui_text}"
    return f"{download_options}\n{status}, {elapsed}\n{ui_text}"