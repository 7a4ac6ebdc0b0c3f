"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application, such as API records, configuration and
statistics.
"""

from .config import DownloadConfig
from .stats import DownloadStats
from .track import (
    Like,
    LikesPage,
    Playlist,
    PlaylistTrack,
    ResourceRef,
    StreamLocation,
    Track,
    Transcoding,
    User,
)

__all__ = [
    "DownloadConfig",
    "DownloadStats",
    "Like",
    "LikesPage",
    "Playlist",
    "PlaylistTrack",
    "ResourceRef",
    "StreamLocation",
    "Track",
    "Transcoding",
    "User",
]
