"""Media downloader engine configuration, output parsing, progress text and updates."""

__version__ = "0.1.0"
__all__ = [
    "engine",
    "functions",
    "logdata",
    "network",
    "progress",
    "updatecheck",
    "youtube_dl",
]