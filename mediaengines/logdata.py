"""Collection of log lines and the rules that fold process output into them."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

LOG_PREFIX = "[UMD4]"

_UPDATE_HINT = "Confirm you are on the latest version using  yt-dlp -U"
_UPDATE_HINT_REPLACEMENT = (
    "\n\nConfirm you are on the latest version, Go to Settings and click "
    '"Update Engine"'
)
_AUTH_MARKERS = (
    "Sign in to confirm",
    "User is not entitled",
    "Authentication required",
    "LogIn to access",
    "access denied",
)
_AUTH_ERROR_TEXT = (
    "ERROR: Unable to download without authentication.\n\nSign-In to the "
    "website with an account from built-in browser or provide "
    'authentication cookie in "Settings section" and try again.'
)
_FINISHED_PROGRESS = "[download] 100.0%"

Predicate = Callable[[str], bool]


def _never(_: str) -> bool:
    return False


def _always(_: str) -> bool:
    return True


def _as_text(data: str | bytes) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass
class LogLine:
    """One line of output, tagged with the id of the task that produced it."""

    text: str
    id: int = -1
    progress_line: bool = False

    def replace(self, text: str) -> None:
        self.text = text
        self.progress_line = True


class LogData:
    """An ordered list of log lines with progress-line replacement."""

    def __init__(self, post_process_marker: str | None = None) -> None:
        self._marker = post_process_marker
        self._lines: list[LogLine] = []
        self._done_downloading = False

    def __len__(self) -> int:
        return len(self._lines)

    def __getitem__(self, index: int) -> str:
        return self._lines[index].text

    @property
    def done_downloading(self) -> bool:
        return self._done_downloading

    def is_empty(self) -> bool:
        return not self._lines

    def last_text(self) -> str:
        return self._lines[-1].text

    def last_line_is_progress_line(self) -> bool:
        return self._lines[-1].progress_line

    def clear(self) -> None:
        self._lines.clear()

    def lines(self) -> Iterator[tuple[int, str]]:
        """Yield (id, text) for every line in order."""
        for line in self._lines:
            yield line.id, line.text

    def to_string(self) -> str:
        return "\n".join(line.text for line in self._lines)

    def to_line(self) -> str:
        return "".join(line.text for line in self._lines)

    def to_string_list(self) -> list[str]:
        if not self._lines:
            return []
        return self.to_string().split("\n")

    def remove_last(self) -> None:
        self._lines.pop()

    def replace_last(self, text: str) -> None:
        self._lines[-1].replace(text)

    def add(self, text: str, id: int = -1) -> None:
        self.replace_or_add(text, id, _never, _never)

    def replace_or_add(
        self,
        text: str,
        id: int,
        should_replace: Predicate,
        should_add: Predicate,
    ) -> None:
        """Replace the newest line of task ``id`` or insert after it.

        A line from a task with no earlier lines, or with id -1, is appended.
        """
        if self._is_post_process(text):
            self._done_downloading = True
            return

        if id != -1:
            for position in range(len(self._lines) - 1, -1, -1):
                line = self._lines[position]
                if line.id != id:
                    continue
                if should_replace(line.text) and not should_add(line.text):
                    line.replace(text)
                else:
                    self._lines.insert(position + 1, LogLine(text, id))
                return

        self._lines.append(LogLine(text, id))

    def _is_post_process(self, text: str) -> bool:
        return bool(self._marker) and text.startswith(self._marker)


@dataclass
class OutputRules:
    """How an engine's raw output is split, filtered and collapsed."""

    control_structure: dict = field(default_factory=dict)
    skip_lines_with_text: list[str] = field(default_factory=list)
    split_lines_by: list[str] = field(default_factory=list)
    like_youtube_dl: bool = False


class LogUpdater:
    """Feeds a chunk of process output into a LogData under a set of rules."""

    def __init__(self, rules: OutputRules, output: LogData, id: int = -1) -> None:
        self._rules = rules
        self._output = output
        self._id = id

    def run(self, data: str | bytes, human_readable_json: bool = False) -> None:
        text = _as_text(data)

        if self._rules.like_youtube_dl and human_readable_json:
            if text.startswith(("[", "{")):
                try:
                    document = json.loads(text)
                except ValueError:
                    pass
                else:
                    pretty = json.dumps(
                        document, indent=4, sort_keys=True, ensure_ascii=False
                    )
                    self._output.add(pretty + "\n", self._id)
                    return

        separators = self._rules.split_lines_by
        if len(separators) == 1 and separators[0]:
            self._add(text, separators[0][0])
        elif len(separators) == 2 and separators[0] and separators[1]:
            for chunk in text.split(separators[0][0]):
                self._add(chunk, separators[1][0])
        else:
            for chunk in text.split("\r"):
                self._add(chunk, "\n")

    def meets_condition(self, line: str) -> bool:
        """Whether ``line`` is a progress line per the control structure."""
        structure = self._rules.control_structure
        connector = _as_str(structure.get("Connector"))
        lhs = structure.get("lhs")

        if not connector:
            return isinstance(lhs, dict) and self._matches(line, lhs)

        rhs = structure.get("rhs")
        if not (isinstance(lhs, dict) and isinstance(rhs, dict)):
            return False

        left = self._matches(line, lhs)
        right = self._matches(line, rhs)
        if connector == "&&":
            return left and right
        if connector == "||":
            return left or right
        return False

    def skip_line(self, line: str) -> bool:
        if not line:
            return True
        return any(text in line for text in self._rules.skip_lines_with_text)

    @staticmethod
    def _matches(line: str, rule: dict) -> bool:
        if "startsWith" in rule:
            return line.startswith(_as_str(rule["startsWith"]))
        if "endsWith" in rule:
            return line.endswith(_as_str(rule["endsWith"]))
        if "contains" in rule:
            return _as_str(rule["contains"]) in line
        if "containsAny" in rule:
            items = rule["containsAny"]
            items = items if isinstance(items, list) else []
            return any(_as_str(item) in line for item in items)
        if "containsAll" in rule:
            items = rule["containsAll"]
            items = items if isinstance(items, list) else []
            return all(_as_str(item) in line for item in items)
        return False

    def _add(self, data: str, token: str) -> None:
        output = self._output
        for line in data.split(token):
            if self.skip_line(line):
                continue
            if not self.meets_condition(line):
                output.add(line, self._id)
            elif self._id == -1:
                if not output.is_empty() and self.meets_condition(output.last_text()):
                    output.replace_last(line)
                else:
                    output.add(line)
            else:
                output.replace_or_add(
                    line, self._id, self.meets_condition, self._finished_progress
                )

    def _finished_progress(self, line: str) -> bool:
        return self._rules.like_youtube_dl and line.startswith(_FINISHED_PROGRESS)


def update_log(
    data: str | bytes,
    rules: OutputRules,
    output: LogData,
    id: int = -1,
    human_readable_json: bool = False,
) -> None:
    """Fold ``data`` into ``output`` following ``rules``."""
    LogUpdater(rules, output, id).run(data, human_readable_json)


class Logger:
    """Application log that notifies a view when its text changes."""

    def __init__(self, on_update: Callable[[str], None] | None = None) -> None:
        self._on_update = on_update
        self._lines = LogData()
        self._update_view = False

    @property
    def data(self) -> LogData:
        return self._lines

    def add(self, text: str | bytes, id: int = -1) -> None:
        line = _as_text(text)
        if not line.startswith(LOG_PREFIX):
            line = f"{LOG_PREFIX} {line}"
        self._lines.add(line, id)
        self._update()

    def add_with(
        self, function: Callable[[LogData, int, bool], None], id: int = -1
    ) -> None:
        """Let ``function`` edit the log lines directly, then refresh."""
        function(self._lines, id, True)
        self._update()

    def log_error(self, data: str | bytes, id: int = -1) -> None:
        text = f"{LOG_PREFIX}[std error] {_as_text(data)}"
        self._lines.replace_or_add(text, id, _always, _always)
        self._update()

    def clear(self) -> None:
        self._lines.clear()
        if self._update_view and self._on_update is not None:
            self._on_update("")

    def text(self) -> str:
        """The log as it is shown to the user."""
        content = self._lines.to_string().replace(
            _UPDATE_HINT, _UPDATE_HINT_REPLACEMENT
        )
        if any(marker in content for marker in _AUTH_MARKERS):
            return _AUTH_ERROR_TEXT
        return content

    def update_view(self, enabled: bool) -> None:
        self._update_view = enabled
        self._update()

    def _update(self) -> None:
        if self._update_view and self._on_update is not None:
            self._on_update(self.text())


class LoggerWrapper:
    """A Logger bound to one task id."""

    def __init__(self, logger: Logger, id: int) -> None:
        self._logger = logger
        self._id = id

    def add(self, text: str | bytes) -> None:
        self._logger.add(text, self._id)

    def add_with(self, function: Callable[[LogData, int, bool], None]) -> None:
        self._logger.add_with(function, self._id)

    def log_error(self, data: str | bytes) -> None:
        self._logger.log_error(data, self._id)

    def clear(self) -> None:
        self._logger.clear()