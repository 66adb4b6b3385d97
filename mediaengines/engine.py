"""Engine descriptions: directories, executables and configuration."""

from __future__ import annotations

import json
import os
import struct
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from mediaengines.logdata import Logger, OutputRules

DEFAULT_PATH = "${default}"
BACKEND_PATH = "${BackendPath}"
COMMAND_NAME = "${CommandName}"
MEDIA_ALREADY_IN_ARCHIVE_TEXT = "Media Already In Archive"

FindExecutable = Callable[[str], str]


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_bool(value: Any, default: bool = False) -> bool:
    return value if isinstance(value, bool) else default


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return 0


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _to_string_list(value: Any, protect_space: bool = False) -> list[str]:
    items = value if isinstance(value, list) else []
    result = []
    for item in items:
        text = _as_str(item)
        result.append(f'"{text}"' if protect_space and " " in text else text)
    return result


def _platform_is_32_bit() -> bool:
    return struct.calcsize("P") == 4


class EnginePaths:
    """The directory layout engines live in; created on construction."""

    def __init__(self, base_path: str) -> None:
        self.base_path = base_path
        self.engine_path = f"{base_path}/core"
        self.bin_path = f"{self.engine_path}/bin"
        self.data_path = f"{self.engine_path}/data"
        for path in (self.base_path, self.bin_path, self.engine_path, self.data_path):
            os.makedirs(path, exist_ok=True)

    def bin_file(self, name: str) -> str:
        return f"{self.bin_path}/{name}"

    def engine_file(self, name: str) -> str:
        return f"{self.engine_path}/{name}"

    def data_file(self, name: str) -> str:
        return f"{self.data_path}/{name}"

    def socket_path(self) -> str:
        directory = f"{self.base_path}/tmp"
        os.makedirs(directory, exist_ok=True)
        return f"{directory}/ipc"


@dataclass
class ExeArgs:
    """The command prefix that starts an engine and the real executable."""

    exe: list[str] = field(default_factory=list)
    real_exe: str = ""
    args: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.real_exe


class Command:
    """A full command line: an engine's prefix followed by extra arguments."""

    def __init__(self, exe_args: ExeArgs, args: list[str]) -> None:
        if not exe_args.exe:
            raise ValueError("engine has no executable")
        self.exe = exe_args.exe[0]
        self.args = [*exe_args.exe[1:], *exe_args.args, *args]

    def valid(self) -> bool:
        return os.path.exists(self.exe)


class EngineFile:
    """Reads and writes one engine file, logging failures."""

    def __init__(self, path: str, logger: Logger) -> None:
        self.path = path
        self._logger = logger

    def write_text(self, text: str) -> None:
        try:
            with open(self.path, "w", encoding="utf-8") as handle:
                handle.write(text)
        except OSError:
            self._logger.add(f"Failed to open file for writing: {self.path}")

    def write_json(self, obj: Any) -> None:
        self.write_text(json.dumps(obj, indent=4) + "\n")

    def read_all(self) -> bytes:
        try:
            with open(self.path, "rb") as handle:
                return handle.read()
        except OSError:
            self._logger.add(f"Failed to open file for reading: {self.path}")
            return b""

    def read_lines(self) -> list[str]:
        """Non-empty lines with surrounding whitespace removed."""
        try:
            with open(self.path, "rb") as handle:
                raw = handle.readlines()
        except OSError:
            self._logger.add(f"Failed to open file for reading: {self.path}")
            return []
        lines = (line.strip().decode("utf-8", errors="replace") for line in raw)
        return [line for line in lines if line]


@dataclass
class Engine:
    """A backend that downloads media, as described by its configuration."""

    name: str = ""
    command_name: str = ""
    version_argument: str = ""
    line: int = 0
    position: int = 0
    valid: bool = False
    main_engine: bool = False
    like_youtube_dl: bool = False
    exe_folder_path: str = ""
    download_url: str = ""
    exe_path: ExeArgs = field(default_factory=ExeArgs)
    config: dict = field(default_factory=dict)
    control_structure: dict = field(default_factory=dict)
    can_download_playlist: bool = False
    replace_output_with_progress_report: bool = False
    user_name: str = ""
    password: str = ""
    options_argument: str = ""
    playlist_items_argument: str = ""
    batch_file_argument: str = ""
    cookie_argument: str = ""
    play_list_url_prefix: str = ""
    split_lines_by: list[str] = field(default_factory=list)
    remove_text: list[str] = field(default_factory=list)
    skip_line_with_text: list[str] = field(default_factory=list)
    default_download_cmd_options: list[str] = field(default_factory=list)
    default_list_cmd_options: list[str] = field(default_factory=list)
    version: str = ""
    broken: bool = False
    functions: Any = None

    @classmethod
    def from_command(
        cls,
        find_executable: FindExecutable,
        logger: Logger,
        name: str,
        version_argument: str,
        line: int,
        position: int,
    ) -> Engine:
        """An auxiliary tool found on the search path by name."""
        engine = cls(
            name=name,
            command_name=name,
            version_argument=version_argument,
            line=line,
            position=position,
            valid=True,
        )
        found = find_executable(name)
        if found:
            engine.exe_path = ExeArgs([found], found)
        else:
            engine.valid = False
            logger.add(f'Failed to find executable "{name}"')
        return engine

    @classmethod
    def from_config(
        cls,
        config: dict,
        paths: EnginePaths,
        find_executable: FindExecutable,
        logger: Logger,
    ) -> Engine:
        """A main engine described by a parsed JSON configuration."""
        engine = cls(
            name=_as_str(config.get("Name")),
            version_argument=_as_str(config.get("VersionArgument")),
            line=_as_int(config.get("VersionStringLine")),
            position=_as_int(config.get("VersionStringPosition")),
            valid=True,
            main_engine=True,
            like_youtube_dl=_as_bool(config.get("LikeYoutubeDl")),
            exe_folder_path=_as_str(config.get("BackendPath")),
            download_url=_as_str(config.get("DownloadUrl")),
            config=config,
        )
        if engine.exe_folder_path in (DEFAULT_PATH, BACKEND_PATH):
            engine.exe_folder_path = paths.bin_path

        if "Cmd" not in config:
            engine.command_name = _as_str(config.get("CommandName"))
            names = _to_string_list(config.get("CommandNames"))
            if names:
                engine._resolve_command_list(names, find_executable, paths, logger)
            else:
                engine._resolve_single_command(find_executable, logger)
        else:
            generic = _as_dict(_as_dict(config["Cmd"]).get("Generic"))
            arch = "x86" if _platform_is_32_bit() else "amd64"
            entry = _as_dict(generic.get(arch))
            engine.command_name = _as_str(entry.get("Name"))
            names = _to_string_list(entry.get("Args"))
            if len(names) == 1:
                engine._resolve_single_command(find_executable, logger)
            else:
                engine._resolve_command_list(names, find_executable, paths, logger)

        engine.update_options()
        return engine

    def _resolve_single_command(
        self, find_executable: FindExecutable, logger: Logger
    ) -> None:
        found = find_executable(self.command_name)
        if found:
            self.exe_path = ExeArgs([found], found)
        elif self.download_url and self.exe_folder_path:
            path = f"{self.exe_folder_path}/{self.command_name}"
            self.exe_path = ExeArgs([path], path)
        else:
            self.valid = False
            logger.add(f'Failed to find executable "{self.command_name}"')

    def _resolve_command_list(
        self,
        names: list[str],
        find_executable: FindExecutable,
        paths: EnginePaths,
        logger: Logger,
    ) -> None:
        if not names:
            self.valid = False
            return

        cmd, *rest = names
        sub_cmd = cmd
        resolved = []
        for item in rest:
            item = item.replace(BACKEND_PATH, paths.bin_path)
            item = item.replace(COMMAND_NAME, self.command_name)
            if item.endswith(self.command_name):
                if item == self.command_name:
                    found = find_executable(self.command_name)
                    if found:
                        item = found
                        sub_cmd = found
                else:
                    sub_cmd = item
            resolved.append(item)

        found = find_executable(cmd)
        if found:
            self.exe_path = ExeArgs([found], sub_cmd, resolved)
            return
        self.valid = False
        if cmd == "python3":
            logger.add(f'Failed to find python3 executable for backend "{self.name}"')
        else:
            logger.add(f'Failed to find executable "{cmd}"')

    def update_options(self) -> None:
        """Reload the download options from the configuration."""
        config = self.config
        self.control_structure = _as_dict(config.get("ControlJsonStructure"))
        self.can_download_playlist = _as_bool(config.get("CanDownloadPlaylist"))
        self.replace_output_with_progress_report = _as_bool(
            config.get("ReplaceOutputWithProgressReport")
        )
        self.user_name = _as_str(config.get("UserName"))
        self.password = _as_str(config.get("Password"))
        self.options_argument = _as_str(config.get("OptionsArgument"))
        self.playlist_items_argument = _as_str(config.get("PlaylistItemsArgument"))
        self.batch_file_argument = _as_str(config.get("BatchFileArgument"))
        self.cookie_argument = _as_str(config.get("CookieArgument"))
        self.split_lines_by = _to_string_list(config.get("SplitLinesBy"))
        self.remove_text = _to_string_list(config.get("RemoveText"))
        self.skip_line_with_text = _to_string_list(config.get("SkipLineWithText"))
        self.default_download_cmd_options = _to_string_list(
            config.get("DefaultDownLoadCmdOptions"), protect_space=True
        )
        self.default_list_cmd_options = _to_string_list(
            config.get("DefaultListCmdOptions")
        )

    def version_string(self, data: str) -> str:
        """Pick the version word out of the engine's version output."""
        lines = [line for line in data.split("\n") if line]
        if 0 <= self.line < len(lines):
            words = [word for word in lines[self.line].split(" ") if word]
            if 0 <= self.position < len(words):
                self.version = words[self.position]
                return self.version
        return ""

    def backend_exists(self) -> bool:
        return bool(self.exe_path.real_exe) and os.path.exists(self.exe_path.real_exe)

    def output_rules(self) -> OutputRules:
        return OutputRules(
            control_structure=self.control_structure,
            skip_lines_with_text=self.skip_line_with_text,
            split_lines_by=self.split_lines_by,
            like_youtube_dl=self.like_youtube_dl,
        )

    def set_broken(self) -> None:
        self.broken = True