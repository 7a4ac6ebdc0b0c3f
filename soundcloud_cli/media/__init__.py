"""
Media Processing Layer.

This package is responsible for all media operations: fetching streams,
running ffmpeg, installing it when missing, and metadata tagging.
"""

from .encoder import EncodeProfile, EncoderHandle, FFmpegEncoder, resolve_encoder
from .fetcher import FetchedAudio, MediaFetcher
from .tagger import Tagger

__all__ = [
    "EncodeProfile",
    "EncoderHandle",
    "FFmpegEncoder",
    "FetchedAudio",
    "MediaFetcher",
    "Tagger",
    "resolve_encoder",
]
