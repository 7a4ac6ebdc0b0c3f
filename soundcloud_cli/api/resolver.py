"""
Maps public SoundCloud URLs to API resource references.
"""

import logging
from urllib.parse import urlsplit

from soundcloud_cli.exceptions import DecodeFailedError, InvalidUrlError
from soundcloud_cli.models.track import ResourceRef

from .client import SoundcloudAPIClient

log = logging.getLogger(__name__)

SOUNDCLOUD_HOST = "soundcloud.com"
SUPPORTED_KINDS = ("track", "playlist")


def validate_soundcloud_url(url: str) -> str:
    """
    Checks that `url` is an http(s) URL on soundcloud.com or one of its
    subdomains (m., www., on.) with a non-empty path.

    Returns:
        The stripped URL.

    Raises:
        InvalidUrlError: If the URL does not belong to SoundCloud.
    """
    url = url.strip()
    parts = urlsplit(url)
    host = (parts.hostname or "").lower()
    if parts.scheme not in ("http", "https"):
        raise InvalidUrlError(f"Not an http(s) URL: {url!r}")
    if host != SOUNDCLOUD_HOST and not host.endswith("." + SOUNDCLOUD_HOST):
        raise InvalidUrlError(f"Not a SoundCloud URL: {url!r}")
    if not parts.path.strip("/"):
        raise InvalidUrlError(f"URL does not point to a track or playlist: {url!r}")
    return url


class Resolver:
    """Resolves a public URL with a single call to the `/resolve` endpoint."""

    def __init__(self, api_client: SoundcloudAPIClient):
        self._api_client = api_client

    async def resolve(self, url: str) -> ResourceRef:
        """
        Resolves a track or playlist URL.

        Raises:
            InvalidUrlError: If the URL is not a SoundCloud URL, or points to
                something other than a track or playlist (e.g. a user).
            NotFoundError: If SoundCloud has no resource at that URL.
            UnauthorizedError: If the token cannot see the resource.
        """
        url = validate_soundcloud_url(url)
        payload = await self._api_client.resolve(url)

        kind = payload.get("kind")
        if kind not in SUPPORTED_KINDS:
            raise InvalidUrlError(
                f"URL resolves to a {kind or 'unknown resource'}, "
                "not a track or playlist."
            )
        if not isinstance(payload.get("id"), int):
            raise DecodeFailedError("Resolve response is missing a numeric id.")

        ref = ResourceRef(
            kind=kind,
            id=payload["id"],
            permalink_url=payload.get("permalink_url") or url,
        )
        log.debug(f"Resolved {url} to {ref.kind} {ref.id}")
        return ref
