"""
Helper functions for formatting data into human-readable strings.
"""

from soundcloud_cli.models.track import Track


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '8.4 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_duration(seconds: float) -> str:
    """Formats seconds as '1h 02m 03s', '2m 05s' or '7s'."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def track_label(track: Track) -> str:
    """A short 'artist - title' label for log lines."""
    artist = track.user.username or track.user.permalink or "Unknown Artist"
    title = track.title or track.permalink or f"Track {track.id}"
    return f"{artist} - {title}"
