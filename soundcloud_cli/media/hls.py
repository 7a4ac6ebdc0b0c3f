"""
Parses HLS media playlists into an ordered list of segment URLs.
"""

import re
from urllib.parse import urljoin

from soundcloud_cli.exceptions import DecodeFailedError, NoTranscodingError

_MAP_URI = re.compile(r'URI="([^"]+)"')
_KEY_METHOD = re.compile(r"METHOD=([A-Z0-9-]+)")


def parse_segment_urls(playlist_text: str, base_url: str) -> list[str]:
    """
    Extracts segment URLs from an HLS media playlist, in playback order.

    An `#EXT-X-MAP` initialization segment, if present, is returned first.
    Relative URIs are resolved against `base_url`.

    Raises:
        DecodeFailedError: If the text is not a media playlist or lists no segments.
        NoTranscodingError: If the segments are encrypted.
    """
    lines = [line.strip() for line in playlist_text.splitlines() if line.strip()]
    if not lines or lines[0] != "#EXTM3U":
        raise DecodeFailedError("Stream manifest is not an HLS playlist.")

    init_segment = None
    segments = []
    for line in lines[1:]:
        if line.startswith("#EXT-X-STREAM-INF"):
            raise DecodeFailedError("Expected an HLS media playlist, got a master playlist.")
        if line.startswith("#EXT-X-KEY"):
            method = _KEY_METHOD.search(line)
            if method and method.group(1) != "NONE":
                raise NoTranscodingError("HLS stream is encrypted.")
        elif line.startswith("#EXT-X-MAP") and init_segment is None:
            if uri := _MAP_URI.search(line):
                init_segment = urljoin(base_url, uri.group(1))
        elif not line.startswith("#"):
            segments.append(urljoin(base_url, line))

    if not segments:
        raise DecodeFailedError("HLS playlist contains no segments.")
    return [init_segment, *segments] if init_segment else segments
