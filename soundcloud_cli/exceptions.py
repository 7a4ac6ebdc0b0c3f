"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class SoundcloudCliError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(SoundcloudCliError):
    """Raised for issues related to configuration loading or validation."""


class InvalidUrlError(SoundcloudCliError):
    """Raised when a URL is not a SoundCloud track or playlist URL."""


class UnauthorizedError(SoundcloudCliError):
    """Raised when the API rejects the OAuth token (HTTP 401/403)."""

    def __init__(self, message: str = "Token invalid or expired."):
        super().__init__(message)


class NotFoundError(SoundcloudCliError):
    """Raised when the API reports that a resource does not exist."""


class RequestFailedError(SoundcloudCliError):
    """Raised for transport failures and unexpected HTTP statuses."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class RateLimitedError(RequestFailedError):
    """Raised when the API keeps answering 429 after all retries."""

    def __init__(self, message: str = "Received 429: rate limited."):
        super().__init__(message, status=429)


class DecodeFailedError(SoundcloudCliError):
    """Raised when a response body does not match the expected schema."""


class NoTranscodingError(SoundcloudCliError):
    """Raised when a track exposes no downloadable stream."""


class SegmentFetchError(SoundcloudCliError):
    """Raised when a single HLS segment cannot be downloaded."""

    def __init__(self, index: int, reason: str = ""):
        message = f"Failed to fetch segment #{index}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.index = index


class EncoderUnavailableError(SoundcloudCliError):
    """Raised when no usable ffmpeg binary can be located or installed."""


class EncodeFailedError(SoundcloudCliError):
    """Raised when ffmpeg exits with a non-zero status."""

    def __init__(self, exit_code: int, stderr: str = ""):
        message = f"FFmpeg failed with exit code: {exit_code}"
        if stderr.strip():
            message += f" ({stderr.strip().splitlines()[-1]})"
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class TagWriteError(SoundcloudCliError):
    """Raised when metadata cannot be written. The audio file is kept."""
