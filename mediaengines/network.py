"""Downloading engine executables from their release pages."""

from __future__ import annotations

import json
import math
import os
import stat
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass
from typing import IO, Any

from mediaengines.engine import Engine
from mediaengines.logdata import LOG_PREFIX, LogData, Logger

DEFAULT_ASSET_NAME = "yt-dlp"
CHECKSUM_ASSET_NAME = "SHA2-256SUMS"

_CHUNK_SIZE = 64 * 1024
_SIZE_UNITS = ("KiB", "MiB", "GiB", "TiB", "PiB", "EiB")
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1

Opener = Callable[[str], IO[bytes]]


class DownloadError(RuntimeError):
    """Raised when an engine could not be downloaded."""


@dataclass
class ReleaseMetadata:
    """Where an engine's executable and checksums can be downloaded from."""

    size: int = 0
    url: str = ""
    sha256: str = ""


def _json_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and _INT_MIN <= value <= _INT_MAX:
        return value
    return 0


def _json_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def parse_release_metadata(
    data: str | bytes, asset_name: str = DEFAULT_ASSET_NAME
) -> ReleaseMetadata:
    """Read the executable and checksum assets out of a release document."""
    try:
        document = json.loads(data)
    except ValueError as exc:
        raise ValueError(f"invalid release document: {exc}") from exc

    metadata = ReleaseMetadata()
    if not isinstance(document, dict):
        return metadata
    assets = document.get("assets")
    for asset in assets if isinstance(assets, list) else []:
        if not isinstance(asset, dict):
            continue
        name = _json_str(asset.get("name"))
        if name == asset_name:
            metadata.url = _json_str(asset.get("browser_download_url"))
            metadata.size = _json_int(asset.get("size"))
        elif name == CHECKSUM_ASSET_NAME:
            metadata.sha256 = _json_str(asset.get("browser_download_url"))
    return metadata


def resolve_install_path(exe_path: str, bin_path: str) -> str:
    """Where to put an engine: its own path if inside ``bin_path``, else there."""
    normalized = exe_path.replace("\\", "/")
    internal = bin_path.replace("\\", "/")
    cut = normalized.rfind("/")
    folder = normalized[:cut] if cut != -1 else normalized
    if folder.startswith(internal):
        return exe_path
    name = normalized[cut + 1 :] if cut != -1 else exe_path
    return f"{internal}/{name}"


def format_data_size(size: int) -> str:
    """A byte count in binary units with two decimals."""
    if size == 0:
        return "0 bytes"
    power = int(math.log2(abs(size)) // 10)
    if power == 0:
        return f"{size} bytes"
    power = min(power, len(_SIZE_UNITS))
    return f"{size / (1 << (10 * power)):.2f} {_SIZE_UNITS[power - 1]}"


def progress_message(engine_name: str, received: int, total: int) -> str:
    """The line shown while an engine's executable downloads."""
    if total:
        percent = received * 100 / total
    else:
        percent = math.inf if received else math.nan
    current = format_data_size(received)
    total_size = format_data_size(total)
    return f"Downloading {engine_name}: {current} / {total_size} ({percent:.2f}%)"


def post_message(output: LogData, engine_name: str, message: str) -> None:
    """Add a download status line, collapsing repeated progress lines."""
    prefix = f"Downloading {engine_name}"
    line = f"{LOG_PREFIX} {message}"
    if output.is_empty():
        output.add(line)
    elif message == "...":
        output.replace_last(output.last_text() + " ...")
    elif message.startswith(prefix):
        if output.last_text().startswith(f"{LOG_PREFIX} {prefix}"):
            output.remove_last()
        output.add(line)
    else:
        output.add(line)


def _open_url(url: str) -> IO[bytes]:
    return urllib.request.urlopen(urllib.request.Request(url))


class EngineDownloader:
    """Fetches an engine's latest release and installs its executable."""

    def __init__(
        self, logger: Logger, bin_path: str, opener: Opener | None = None
    ) -> None:
        self._logger = logger
        self._bin_path = bin_path
        self._opener = opener if opener is not None else _open_url

    def download(self, engine: Engine) -> str:
        """Download and install ``engine``; return the installed path."""
        name = engine.name
        install_path = resolve_install_path(engine.exe_path.real_exe, self._bin_path)

        folder = engine.exe_folder_path
        if not os.path.isdir(folder):
            try:
                os.makedirs(folder, exist_ok=True)
            except OSError:
                self._fail(
                    name,
                    f"Failed to download, Following path can not be created: {folder}",
                )

        self._post(name, f"Start Downloading {name} ...")

        try:
            release = self._read_release(name, engine.download_url)
        except (OSError, ValueError) as exc:
            self._fail(name, f"Download Failed: {exc}")

        try:
            metadata = parse_release_metadata(release)
        except ValueError as exc:
            self._fail(name, f"Failed to parse json file from github: {exc}")

        self._install(name, metadata, install_path)
        return install_path

    def _read_release(self, name: str, url: str) -> bytes:
        chunks = []
        with self._opener(url) as response:
            while chunk := response.read(_CHUNK_SIZE):
                chunks.append(chunk)
                self._post(name, "...")
        return b"".join(chunks)

    def _install(self, name: str, metadata: ReleaseMetadata, path: str) -> None:
        temporary = f"{path}.tmp"
        if os.path.exists(temporary):
            os.remove(temporary)
        if not metadata.url:
            self._fail(name, f"Download Failed: no download address for {name}")

        try:
            with self._opener(metadata.url) as response, open(
                temporary, "wb"
            ) as handle:
                received = 0
                while chunk := response.read(_CHUNK_SIZE):
                    handle.write(chunk)
                    received += len(chunk)
                    self._post(name, progress_message(name, received, metadata.size))
        except (OSError, ValueError) as exc:
            if os.path.exists(temporary):
                os.remove(temporary)
            self._fail(name, f"Download Failed: {exc}")

        self._post(name, "Download complete")
        if os.path.exists(path):
            os.remove(path)
        os.replace(temporary, path)
        os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR)

    def _post(self, engine_name: str, message: str) -> None:
        self._logger.add_with(
            lambda output, _id, _flag: post_message(output, engine_name, message), -1
        )

    def _fail(self, engine_name: str, message: str) -> None:
        self._post(engine_name, message)
        raise DownloadError(message)