"""
Utilities for handling per-user directories and output file names.
"""

import os
from pathlib import Path

from pathvalidate import sanitize_filename

from soundcloud_cli.models.track import Track

APP_DIR_NAME = "soundcloud-cli"


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / APP_DIR_NAME


def get_data_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("LOCALAPPDATA", "~\\AppData\\Local"))
    else:
        base_dir = Path(os.getenv("XDG_DATA_HOME", "~/.local/share"))
    return base_dir.expanduser() / APP_DIR_NAME


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def is_blank(value: str) -> bool:
    """True for names that carry no visible text, e.g. '' or '___ '."""
    return not value.replace("_", "").strip()


def track_file_name(track: Track, ext: str) -> str:
    """
    Builds a safe '<artist> - <title>.<ext>' file name for a track.

    Blank usernames and titles fall back to the URL permalinks.
    """
    artist = track.user.username
    if is_blank(sanitize_filename(artist)):
        artist = track.user.permalink or str(track.user.id)

    title = track.title
    if is_blank(title):
        title = track.permalink or str(track.id)

    return sanitize_filename(f"{artist} - {title}.{ext}")


def safe_dir_name(name: str, fallback: str) -> str:
    """Sanitizes a playlist title for use as a directory name."""
    cleaned = sanitize_filename(name).strip()
    return cleaned if not is_blank(cleaned) else fallback
