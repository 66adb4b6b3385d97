"""Functions for engines that behave like youtube-dl and its yt-dlp fork."""

from __future__ import annotations

import json
import math
import os
from typing import Any

from mediaengines.engine import (
    DEFAULT_PATH,
    MEDIA_ALREADY_IN_ARCHIVE_TEXT,
    Engine,
    EngineFile,
    EnginePaths,
)
from mediaengines.functions import EngineFunctions, OutputFilter, UpdateOptions
from mediaengines.logdata import LogData, Logger
from mediaengines.progress import (
    FinishedState,
    PostProcessing,
    PreProcessing,
    post_processing_text,
    pre_processing_text,
    update_text_on_complete_download,
)

POST_PROCESS_MARKER = "[media-engines] post-processing"

YOUTUBE_DL_RELEASES_URL = (
    "https://api.github.com/repos/ytdl-org/youtube-dl/releases/latest"
)
YT_DLP_RELEASES_URL = "https://api.github.com/repos/yt-dlp/yt-dlp/releases/latest"

_PRINT_TEMPLATE = (
    '{"id":%(id)j,"thumbnail":%(thumbnail)j,"duration":%(duration)j,'
    '"title":%(title)j,"upload_date":%(upload_date)j,'
    '"webpage_url":%(webpage_url)j}'
)
_PROGRESS_TEMPLATE = (
    "download:[download] %(progress._percent_str)s of "
    "%(progress._total_bytes_str)s at "
    "%(progress._speed_str)s ETA %(progress._eta_str)s"
)
_ALREADY_DOWNLOADED = " has already been downloaded"
_DESTINATION = "] Destination: "
_MERGING = ' Merging formats into "'
_IN_ARCHIVE = "has already been recorded in archive"
_SIZE_UNITS = ("KiB", "MiB", "GiB", "TiB", "PiB", "EiB")
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1


def default_control_structure() -> dict:
    """The rule that recognises a download progress line."""
    return {
        "Connector": "&&",
        "lhs": {"startsWith": "[download]"},
        "rhs": {"contains": "ETA"},
    }


def _command(name: str) -> dict:
    entry = {"Name": name, "Args": [name]}
    return {"Generic": {"x86": dict(entry, Args=[name]), "amd64": entry}}


def default_config(name: str, default_path: str = DEFAULT_PATH) -> dict:
    """The built-in configuration of the engine called ``name``."""
    config: dict[str, Any] = {}
    if name == "youtube-dl":
        config["ShowListTableBoundary"] = {
            "ColumnNumber": "0",
            "Comparator": "equals",
            "String": "format",
        }
        config["Cmd"] = _command("youtube-dl")
        config["DownloadUrl"] = YOUTUBE_DL_RELEASES_URL
        config["DefaultListCmdOptions"] = ["-F"]
    else:
        config["Cmd"] = _command("core")
        config["DefaultListCmdOptions"] = ["--no-warnings", "--print", "%(formats)j"]
        config["DownloadUrl"] = YT_DLP_RELEASES_URL

    config.update(
        {
            "RequiredMinimumVersionOfMediaDownloader": "2.2.0",
            "Name": name,
            "CookieArgument": "--cookies",
            "DefaultDownLoadCmdOptions": [
                "--no-warnings",
                "--newline",
                "--ignore-config",
                "--no-playlist",
                "-o",
                "%(title).150B-%(id)s.%(ext)s",
            ],
            "SkipLineWithText": ["(pass -k to keep)"],
            "RemoveText": [],
            "SplitLinesBy": ["\n"],
            "PlaylistItemsArgument": "--playlist-items",
            "ControlJsonStructure": default_control_structure(),
            "VersionArgument": "--version",
            "OptionsArgument": "-f",
            "BackendPath": default_path,
            "VersionStringLine": 0,
            "VersionStringPosition": 0,
            "BatchFileArgument": "-a",
            "CanDownloadPlaylist": True,
            "LikeYoutubeDl": True,
            "ReplaceOutputWithProgressReport": False,
        }
    )
    return config


def write_default_config(
    name: str,
    config_file_name: str,
    logger: Logger,
    paths: EnginePaths,
    default_path: str = DEFAULT_PATH,
) -> dict:
    """Write the built-in configuration to the engines directory and return it."""
    config = default_config(name, default_path)
    EngineFile(paths.engine_file(config_file_name), logger).write_json(config)
    return config


def _json_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        number = value
    elif isinstance(value, float) and value.is_integer():
        number = int(value)
    else:
        return 0
    return number if _INT_MIN <= number <= _INT_MAX else 0


def _json_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _json_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _format_data_size(size: int) -> str:
    if size == 0:
        return "0 bytes"
    power = int(math.log2(abs(size)) // 10)
    if power == 0:
        return f"{size} bytes"
    power = min(power, len(_SIZE_UNITS))
    return f"{size / (1 << (10 * power)):.2f} {_SIZE_UNITS[power - 1]}"


def _remove_option_with_argument(options: list[str], option: str) -> None:
    while option in options:
        index = options.index(option)
        del options[index : index + 2]


class YoutubeDlFilter(OutputFilter):
    """Turns youtube-dl or yt-dlp output into a file name and progress text."""

    def __init__(self, quality: str, engine: Engine) -> None:
        super().__init__(quality, engine)
        self._like_ytdlp = "core" in engine.name
        self._pre_processing = PreProcessing()
        self._post_processing = PostProcessing()
        self._file_name = ""

    def __call__(self, data: LogData) -> str:
        for line in data.to_string_list():
            if line.startswith("ERROR: ") or (
                self._like_ytdlp and line.startswith("core: error:")
            ):
                return line
            if line.startswith("[download] ") and _ALREADY_DOWNLOADED in line:
                name = line[line.index(" ") + 1 :]
                self._file_name = name[: name.index(_ALREADY_DOWNLOADED)]
                return self._file_name
            if _DESTINATION in line:
                self._file_name = line[line.index(_DESTINATION) + len(_DESTINATION) :]
            if _MERGING in line:
                self._file_name = line[line.index('"') + 1 : -1]
            if _IN_ARCHIVE in line:
                return MEDIA_ALREADY_IN_ARCHIVE_TEXT

        if not data.is_empty() and data.last_line_is_progress_line():
            last = data.last_text()
            space = last.find(" ")
            progress = last[space:].lstrip(" ") if space != -1 else last
            return f"{self._file_name}\n{progress}"

        if self._like_ytdlp:
            if data.done_downloading:
                return self._post_processing.text(self._file_name)
            return self._pre_processing.text()
        if not self._file_name:
            return self._pre_processing.text()
        return self._pre_processing.text(self._file_name)


class YoutubeDlFunctions(EngineFunctions):
    """Output parsing and command-line building for youtube-dl like engines."""

    def __init__(
        self, engine: Engine, config: dict, logger: Logger, paths: EnginePaths
    ) -> None:
        super().__init__(engine)
        name = _json_str(config.get("Name"))
        if name in ("youtube-dl", "core") and "Cmd" not in config:
            config_file_name = f"{name}.json"
            path = paths.engine_file(config_file_name)
            if os.path.exists(path):
                os.remove(path)
            fresh = write_default_config(name, config_file_name, logger, paths)
            config.clear()
            config.update(fresh)

    def media_properties(self, data: str | bytes) -> list[list[str]]:
        """Rows of [id, extension, resolution, notes], audio/video-only first."""
        if "core" not in self.engine.name:
            return super().media_properties(data)

        try:
            document = json.loads(data)
        except ValueError:
            return []
        if not isinstance(document, list):
            return []

        partial: list[list[str]] = []
        complete: list[list[str]] = []
        for item in document:
            fmt = item if isinstance(item, dict) else {}
            format_id = _json_str(fmt.get("format_id"))
            ext = _json_str(fmt.get("ext"))
            resolution = _json_str(fmt.get("resolution"))
            file_size = _format_data_size(_json_int(fmt.get("filesize")))
            container = _json_str(fmt.get("container"))
            protocol = _json_str(fmt.get("protocol"))
            acodec = _json_str(fmt.get("acodec"))

            if acodec == "none" and resolution and resolution != "audio only":
                resolution += "\nvideo only"

            notes = f"Proto: {protocol}, File Size: {file_size}\n"
            if container:
                notes += f"container: {container}\n"
            details = [
                ("acodec: ", acodec),
                ("vcodec: ", _json_str(fmt.get("vcodec"))),
                ("tbr: ", f"{_json_float(fmt.get('tbr')):g}"),
                ("vbr: ", f"{_json_float(fmt.get('vbr')):g}"),
            ]
            for label, value in details:
                if value not in ("none", "0"):
                    notes += f"{label}{value}, "
            if notes.endswith(", "):
                notes = notes[:-2]

            row = [format_id, ext, resolution, notes]
            if resolution != "audio only" and "video only" not in resolution:
                complete.append(row)
            else:
                partial.append(row)

        return partial + complete

    def dump_json_arguments(self) -> list[str]:
        if self.engine.name == "youtube-dl":
            return super().dump_json_arguments()
        return ["--no-warnings", "--newline", "--print", _PRINT_TEMPLATE]

    def break_show_list_if_contains(self, columns: list[str]) -> bool:
        if len(columns) <= 1:
            return False
        return columns[0] == "format" or (len(columns) > 2 and "-" in columns[2])

    def make_filter(self, quality: str) -> YoutubeDlFilter:
        return YoutubeDlFilter(quality, self.engine)

    def update_text_on_complete_download(
        self,
        ui_text: str,
        bk_text: str,
        download_options: str,
        state: FinishedState,
    ) -> str:
        if state.cancelled:
            return update_text_on_complete_download(bk_text, download_options, state)
        if state.success:
            markers = (post_processing_text(), pre_processing_text())
            kept = [
                line
                for line in ui_text.split("\n")
                if line and not any(marker in line for marker in markers)
            ]
            return update_text_on_complete_download(
                "\n".join(kept), download_options, state
            )
        return update_text_on_complete_download(ui_text, download_options, state)

    def update_download_options(self, options: UpdateOptions) -> None:
        ours = options.our_options

        if "--yes-playlist" in options.user_options:
            ours[:] = [option for option in ours if option != "--no-playlist"]

        if "--newline" not in ours:
            ours.append("--newline")

        if options.quality and options.quality.lower() != "default":
            ours.append(self.engine.options_argument)
            ours.append(options.quality)

        if options.index_as_string:
            for index, option in enumerate(ours):
                if option == "-o" and index + 1 < len(ours):
                    ours[index + 1] = (
                        ours[index + 1]
                        .replace("%(autonumber)s", options.index_as_string)
                        .replace("%(playlist_index)s", options.index_as_string)
                    )
                    break

        if "core" in self.engine.name:
            _remove_option_with_argument(ours, "--progress-template")
            ours.extend(
                [
                    "--progress-template",
                    _PROGRESS_TEMPLATE,
                    "--progress-template",
                    f"postprocess:{POST_PROCESS_MARKER}",
                ]
            )