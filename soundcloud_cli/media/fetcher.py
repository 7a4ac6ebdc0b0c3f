"""
Retrieves a track's raw audio bytes, either from a single progressive URL or
from an HLS segment list fetched with bounded concurrency.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from soundcloud_cli.api.client import SoundcloudAPIClient
from soundcloud_cli.exceptions import (
    NoTranscodingError,
    SegmentFetchError,
    SoundcloudCliError,
)
from soundcloud_cli.models.config import format_for_mime
from soundcloud_cli.models.track import Track, Transcoding

from .hls import parse_segment_urls

log = logging.getLogger(__name__)

# Called with (completed, total); total is None when the size is unknown.
ProgressCallback = Callable[[int, Optional[int]], None]


@dataclass(frozen=True)
class FetchedAudio:
    """Raw audio held in memory between download and encode."""

    data: bytes
    audio_format: str
    mime_type: str
    segmented: bool = False


class MediaFetcher:
    """Downloads the best available stream of a track into memory."""

    DEFAULT_WORKERS = 3

    def __init__(self, api_client: SoundcloudAPIClient, max_workers: int = DEFAULT_WORKERS):
        self.api_client = api_client
        self.max_workers = max_workers

    @staticmethod
    def select_transcoding(track: Track) -> Transcoding:
        """
        Picks the stream to download: progressive before HLS, 'hq' before 'sq'.
        Previews and encrypted HLS variants are never chosen.

        Raises:
            NoTranscodingError: If no usable transcoding exists.
        """
        candidates = [
            t
            for t in track.media.transcodings
            if not t.snipped and (t.is_progressive or t.is_hls)
        ]
        if not candidates:
            if any(t.snipped for t in track.media.transcodings):
                raise NoTranscodingError(
                    "Only a preview is available for this track with the current token."
                )
            raise NoTranscodingError("No downloadable stream found for this track.")

        return min(
            candidates,
            key=lambda t: (0 if t.is_progressive else 1, 0 if t.quality == "hq" else 1),
        )

    async def fetch(
        self, track: Track, on_progress: Optional[ProgressCallback] = None
    ) -> FetchedAudio:
        """
        Downloads the track's audio.

        Raises:
            NoTranscodingError: If the track has no usable stream.
            SegmentFetchError: If any HLS segment fails; no partial data is returned.
            RequestFailedError: If the stream or manifest request fails.
        """
        transcoding = self.select_transcoding(track)
        log.debug(
            f"Using {transcoding.format.protocol}/{transcoding.quality} stream "
            f"({transcoding.format.mime_type}) for track {track.id}"
        )
        stream_url = await self.api_client.fetch_stream_url(transcoding)
        audio_format = format_for_mime(transcoding.format.mime_type)

        if transcoding.is_progressive:
            data = await self._fetch_progressive(stream_url, on_progress)
            return FetchedAudio(data, audio_format, transcoding.format.mime_type)

        manifest = await self.api_client.fetch_bytes(stream_url)
        segment_urls = parse_segment_urls(
            manifest.decode("utf-8", errors="replace"), stream_url
        )
        data = await self.fetch_segments(segment_urls, on_progress)
        return FetchedAudio(
            data, audio_format, transcoding.format.mime_type, segmented=True
        )

    async def _fetch_progressive(
        self, url: str, on_progress: Optional[ProgressCallback]
    ) -> bytes:
        received = 0

        def on_chunk(size: int) -> None:
            nonlocal received
            received += size
            if on_progress:
                on_progress(received, None)

        return await self.api_client.fetch_bytes(url, on_chunk=on_chunk)

    async def fetch_segments(
        self, segment_urls: list[str], on_progress: Optional[ProgressCallback] = None
    ) -> bytes:
        """
        Fetches all segments with at most `max_workers` requests in flight and
        joins them in list order, whatever order the requests finish in.

        Raises:
            SegmentFetchError: For the first segment that fails. All other
                pending segment requests are cancelled.
        """
        semaphore = asyncio.Semaphore(self.max_workers)
        total = len(segment_urls)
        completed = 0

        async def fetch_one(index: int, url: str) -> bytes:
            nonlocal completed
            async with semaphore:
                try:
                    data = await self.api_client.fetch_bytes(url)
                except SoundcloudCliError as e:
                    raise SegmentFetchError(index, str(e)) from e
            completed += 1
            if on_progress:
                on_progress(completed, total)
            return data

        tasks = [
            asyncio.create_task(fetch_one(index, url))
            for index, url in enumerate(segment_urls)
        ]
        try:
            parts = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        log.debug(f"Fetched {total} segments ({sum(map(len, parts))} bytes)")
        return b"".join(parts)
