"""Behaviour shared by every engine: output filtering, options and listings."""

from __future__ import annotations

from dataclasses import dataclass, field

from mediaengines.engine import Command, Engine
from mediaengines.logdata import LogData, update_log
from mediaengines.progress import (
    FinishedState,
    PreProcessing,
    is_timer_text,
    pre_processing_text,
    update_text_on_complete_download,
)

_COMMAND_LINE_PREFIX = "[UMD4] cmd:"


def _as_text(data: str | bytes) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _words(line: str) -> list[str]:
    return [word for word in line.split(" ") if word]


@dataclass
class UpdateOptions:
    """Inputs to, and the options being built for, one download command."""

    quality: str = ""
    user_options: list[str] = field(default_factory=list)
    index_as_string: str = ""
    urls: list[str] = field(default_factory=list)
    our_options: list[str] = field(default_factory=list)


class OutputFilter:
    """Reduces an engine's log to the text shown for a running download."""

    def __init__(self, quality: str, engine: Engine) -> None:
        self.quality = quality
        self.engine = engine
        self._processing = PreProcessing()

    def __call__(self, data: LogData) -> str:
        if self.engine.replace_output_with_progress_report:
            return self._processing.text()
        if data.is_empty():
            return ""
        last = data.last_text()
        if last.startswith(_COMMAND_LINE_PREFIX):
            return self._processing.text()
        return last


class EngineFunctions:
    """Default handling of an engine's output and command line."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def media_properties(self, data: str | bytes) -> list[list[str]]:
        """Parse a format listing into [format, extension, resolution, notes] rows."""
        kept: list[str] = []
        for line in reversed(_as_text(data).split("\n")):
            if len(_words(line)) > 1:
                if self.break_show_list_if_contains(_words(line)):
                    break
                kept.insert(0, line)

        rows = []
        for line in kept:
            words = _words(line)
            if len(words) > 3:
                fmt, extension, resolution, *notes = words
                rows.append([fmt, extension, resolution, " ".join(notes)])
        return rows

    def break_show_list_if_contains(self, columns: list[str]) -> bool:
        return False

    def make_filter(self, quality: str) -> OutputFilter:
        return OutputFilter(quality, self.engine)

    def command_string(self, command: Command) -> str:
        """The command line with every part in double quotes."""
        return " ".join(f'"{part}"' for part in (command.exe, *command.args))

    def dump_json_arguments(self) -> list[str]:
        return ["--dump-json"]

    def update_text_on_complete_download(
        self,
        ui_text: str,
        bk_text: str,
        download_options: str,
        state: FinishedState,
    ) -> str:
        return update_text_on_complete_download(bk_text, download_options, state)

    def process_data(
        self,
        output: LogData,
        data: str | bytes,
        id: int = -1,
        readable_json: bool = False,
    ) -> None:
        """Fold raw process output into ``output``, minus the engine's noise."""
        text = _as_text(data)
        for unwanted in self.engine.remove_text:
            if unwanted:
                text = text.replace(unwanted, "")
        update_log(text, self.engine.output_rules(), output, id, readable_json)

    def process_text(self, output: LogData, text: str, id: int = -1) -> None:
        """Add a status line, replacing an earlier processing or timer line."""

        def replaceable(line: str) -> bool:
            return line.startswith(pre_processing_text()) or is_timer_text(line)

        output.replace_or_add(text, id, replaceable, lambda _: False)

    def update_download_options(self, options: UpdateOptions) -> None:
        if self.engine.options_argument:
            options.our_options.append(self.engine.options_argument)
        if options.quality:
            options.our_options.append(options.quality)
        options.our_options[:] = [
            option
            for option in options.our_options
            if option not in ("Default", "default")
        ]


class GenericFunctions(EngineFunctions):
    """Functions for engines that need no special handling."""