"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

# Output formats the encoder can produce, keyed by the user-facing name.
FORMAT_MAP = {
    "mp3": {
        "name": "MP3",
        "ext": "mp3",
        "codec": "libmp3lame",
        "muxer": "mp3",
    },
    "m4a": {
        "name": "AAC (M4A)",
        "ext": "m4a",
        "codec": "aac",
        "muxer": "mp4",
    },
    "opus": {
        "name": "Opus (Ogg)",
        "ext": "opus",
        "codec": "libopus",
        "muxer": "ogg",
    },
}

# Maps stream MIME types announced by the API to the matching output format.
MIME_TO_FORMAT = {
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/aac": "m4a",
    "audio/x-m4a": "m4a",
    "audio/ogg": "opus",
    "audio/opus": "opus",
}


def format_for_mime(mime_type: str) -> str:
    """Gets the output format matching a MIME type such as 'audio/ogg; codecs="opus"'."""
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_TO_FORMAT.get(base, "mp3")


def get_format_info(audio_format: str) -> dict[str, str]:
    """Gets all information for a given output format from the central map."""
    return FORMAT_MAP.get(audio_format, FORMAT_MAP["mp3"])


class DownloadConfig(BaseModel):
    """A validated configuration model for a download session."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Output
    output_dir: str = "."
    audio_format: str = "auto"
    bitrate: str = "256k"
    no_m3u: bool = False

    # Encoder
    ffmpeg_path: Optional[str] = None
    assume_yes: bool = False

    # Network
    max_workers: int = 3
    retries: int = 3

    # Likes window
    skip: int = 0
    limit: int = 10
    chunk_size: int = 50

    @field_validator("audio_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        v = v.lower()
        if v != "auto" and v not in FORMAT_MAP:
            raise ValueError(
                f"Format must be 'auto' or one of: {', '.join(FORMAT_MAP)}."
            )
        return v

    @field_validator("bitrate")
    @classmethod
    def validate_bitrate(cls, v: str) -> str:
        if not re.fullmatch(r"\d{2,3}k", v):
            raise ValueError("Bitrate must look like '128k', '256k' or '320k'.")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Keeps segment concurrency small enough not to trip rate limits."""
        if v < 1 or v > 16:
            raise ValueError("Workers must be between 1 and 16.")
        return v

    @field_validator("retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Retries must be between 1 and 10.")
        return v

    @field_validator("skip")
    @classmethod
    def validate_skip(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Skip cannot be negative.")
        return v

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Limit must be at least 1.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v < 1 or v > 200:
            raise ValueError("Chunk size must be between 1 and 200.")
        return v

    @field_validator("ffmpeg_path")
    @classmethod
    def validate_ffmpeg_path(cls, v: Optional[str]) -> Optional[str]:
        return v or None
