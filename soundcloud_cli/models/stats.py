"""
Dataclass for tracking download session statistics.
"""

from dataclasses import dataclass, field


@dataclass
class DownloadStats:
    """Tracks statistics for a download session."""

    tracks_downloaded: int = 0
    tracks_skipped_exists: int = 0
    tracks_failed: int = 0
    tags_failed: int = 0
    total_size_downloaded: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)

    def record_failure(self, label: str, error: Exception) -> None:
        self.tracks_failed += 1
        self.failures.append((label, f"{type(error).__name__}: {error}"))

    @property
    def has_failures(self) -> bool:
        return self.tracks_failed > 0
