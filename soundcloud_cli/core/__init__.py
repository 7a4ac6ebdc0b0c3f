"""
Core application engine for orchestrating the download process.

This package contains the primary logic. The `DownloadManager` acts
as the high-level session coordinator, delegating the task of processing
each individual track to the `TrackProcessor`.
"""

from .download_manager import DownloadManager
from .track_processor import DownloadJob, TrackProcessor

__all__ = ["DownloadJob", "DownloadManager", "TrackProcessor"]
