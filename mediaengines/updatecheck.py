"""Checks whether a newer engine release than the installed one exists."""

from __future__ import annotations

import json
import logging
import re
import urllib.request
from collections.abc import Callable
from datetime import date

ENGINE_VERSION_URL = "https://api.github.com/repos/yt-dlp/yt-dlp/releases/latest"
FALLBACK_ENGINE_VERSION = "2019.01.01"

_ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_log = logging.getLogger(__name__)

Fetch = Callable[[str], "str | bytes"]


def _as_text(data: str | bytes) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _date_parts(text: str) -> tuple[int, int, int]:
    """Year, month and day of an ISO date; zeros when it is not one."""
    match = _ISO_DATE.match(text)
    if match is None:
        return 0, 0, 0
    try:
        parsed = date(*(int(part) for part in match.groups()))
    except ValueError:
        return 0, 0, 0
    return parsed.year, parsed.month, parsed.day


def update_available(installed_version: str, remote_version: str) -> bool:
    """Whether any date field of the remote version exceeds the installed one's."""
    year, month, day = _date_parts(installed_version)
    new_year, new_month, new_day = _date_parts(remote_version)
    return new_year > year or new_month > month or new_day > day


def parse_remote_version(body: str | bytes, url: str) -> str:
    """The release version from a reply to ``url``; empty when it has none."""
    text = _as_text(body)
    if "api." not in url:
        return text.strip()
    try:
        document = json.loads(text)
    except ValueError:
        _log.warning("Engine update check failed, API returned invalid JSON reply.")
        return ""
    if not isinstance(document, dict):
        return ""
    tag = document.get("tag_name")
    return tag.strip() if isinstance(tag, str) else ""


def normalize_installed_version(output: str | bytes) -> str:
    """The version an engine printed, with whitespace collapsed, or the fallback."""
    version = " ".join(_as_text(output).split())
    if not version:
        _log.warning("Engine using fallback engine version...")
        return FALLBACK_ENGINE_VERSION
    return version


def _fetch_url(url: str) -> bytes:
    with urllib.request.urlopen(urllib.request.Request(url)) as response:
        return response.read()


class EngineUpdateCheck:
    """Compares the installed engine version with the latest release."""

    def __init__(
        self, installed_version: str | bytes, fetch: Fetch | None = None
    ) -> None:
        self.installed_version = normalize_installed_version(installed_version)
        self.remote_version = ""
        self._fetch = fetch if fetch is not None else _fetch_url

    def check_for_update(self) -> bool:
        """Fetch the latest release and report whether it is newer."""
        try:
            body = self._fetch(ENGINE_VERSION_URL)
        except OSError as exc:
            _log.warning("Engine update check failed: %s", exc)
            self.remote_version = ""
        else:
            self.remote_version = parse_remote_version(body, ENGINE_VERSION_URL)
        _log.info("Remote engine version: %s", self.remote_version)
        return update_available(self.installed_version, self.remote_version)