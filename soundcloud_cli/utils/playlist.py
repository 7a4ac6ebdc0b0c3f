"""
Utility for generating M3U playlist files.
"""

import logging
from pathlib import Path

from soundcloud_cli.models.track import Track
from soundcloud_cli.utils.formatting import track_label

log = logging.getLogger(__name__)


def generate_m3u(playlist_directory: Path, entries: list[tuple[Path, Track]]) -> bool:
    """
    Writes `<directory name>.m3u` listing `entries` in the given order.

    Paths are written relative to the playlist directory so the folder can
    be moved as a whole.
    """
    if not entries:
        log.debug(f"No audio files in '{playlist_directory}' to create playlist.")
        return False

    playlist_path = playlist_directory / f"{playlist_directory.name}.m3u"
    content = ["#EXTM3U"]
    for audio_path, track in entries:
        length = track.duration // 1000 if track.duration else -1
        content.append(f"#EXTINF:{length},{track_label(track)}")
        try:
            content.append(audio_path.relative_to(playlist_directory).as_posix())
        except ValueError:
            content.append(str(audio_path))

    try:
        with open(playlist_path, "w", encoding="utf-8") as f:
            f.write("\n".join(content) + "\n")
    except OSError as e:
        log.error(f"Failed to write playlist file: {e}")
        return False

    log.info(f"Generated playlist: '{playlist_path}'")
    return True
