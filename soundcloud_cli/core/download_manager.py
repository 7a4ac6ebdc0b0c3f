"""
The main orchestrator for resolving URLs, fetching metadata and running the
per-track pipeline for single tracks, playlists and likes.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from rich.markup import escape

from soundcloud_cli.api.client import SoundcloudAPIClient
from soundcloud_cli.api.resolver import Resolver
from soundcloud_cli.cli.progress_manager import ProgressManager
from soundcloud_cli.exceptions import DecodeFailedError, InvalidUrlError, NotFoundError
from soundcloud_cli.media import (
    EncodeProfile,
    EncoderHandle,
    FFmpegEncoder,
    MediaFetcher,
    Tagger,
)
from soundcloud_cli.models.config import DownloadConfig
from soundcloud_cli.models.stats import DownloadStats
from soundcloud_cli.models.track import Playlist, Track
from soundcloud_cli.utils.formatting import track_label
from soundcloud_cli.utils.path import safe_dir_name
from soundcloud_cli.utils.playlist import generate_m3u

from .track_processor import DownloadJob, TrackProcessor

log = logging.getLogger(__name__)


class DownloadManager:
    """Orchestrates the entire download process."""

    def __init__(
        self,
        config: DownloadConfig,
        api_client: SoundcloudAPIClient,
        encoder_handle: EncoderHandle,
        progress_manager: Optional[ProgressManager] = None,
    ):
        self.config = config
        self.api_client = api_client
        self.resolver = Resolver(api_client)
        self.stats = DownloadStats()
        self.start_time = time.monotonic()
        self.output_dir = Path(config.output_dir)
        self.track_processor = TrackProcessor(
            self.stats,
            MediaFetcher(api_client, max_workers=config.max_workers),
            FFmpegEncoder(encoder_handle),
            Tagger(),
            EncodeProfile(config.audio_format, config.bitrate),
            progress_manager,
        )

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    async def download_track(self, url: str) -> Path:
        """
        Downloads a single track. Any failure propagates to the caller.

        Raises:
            InvalidUrlError: If the URL does not point to a track.
        """
        ref = await self.resolver.resolve(url)
        if ref.kind != "track":
            raise InvalidUrlError(
                f"URL points to a {ref.kind}, not a track. Use the '{ref.kind}' command."
            )
        log.info(f"Fetching track from: [dim]{escape(url)}[/dim]")
        track = await self.api_client.fetch_track(ref.id)
        return await self.track_processor.process_track(DownloadJob(track, self.output_dir))

    async def download_playlist(self, url: str) -> list[Path]:
        """
        Downloads every track of a playlist into its own directory.

        A failing track is logged and counted; the remaining tracks still run.
        """
        ref = await self.resolver.resolve(url)
        if ref.kind != "playlist":
            raise InvalidUrlError(
                f"URL points to a {ref.kind}, not a playlist. Use the '{ref.kind}' command."
            )
        playlist = await self.api_client.fetch_playlist(ref.id)
        playlist_dir = self.output_dir / safe_dir_name(
            playlist.title, f"playlist_{playlist.id}"
        )
        tracks = await self._hydrate_tracks(playlist)

        log.info(
            f"\n[bold green]🎵 Playlist:[/] {escape(playlist.title)} "
            f"[dim]({len(playlist.tracks)} tracks)[/dim]"
        )

        entries: list[tuple[Path, Track]] = []
        total = len(tracks)
        for i, (track_id, track) in enumerate(tracks, start=1):
            if track is None:
                self.stats.record_failure(
                    f"Track {track_id}",
                    NotFoundError("Track is missing or unreadable."),
                )
                log.error(f"  [red]✗ Failed:[/] Track {track_id} (missing or unreadable)")
                continue
            path = await self._process_isolated(track, playlist_dir, f"{i}/{total}")
            if path is not None:
                entries.append((path, track))

        if not self.config.no_m3u:
            generate_m3u(playlist_dir, entries)
        return [path for path, _ in entries]

    async def _hydrate_tracks(
        self, playlist: Playlist
    ) -> list[tuple[int, Optional[Track]]]:
        """
        Completes stub playlist entries with a batched track lookup, keeping
        playlist order. Entries the API does not return stay None.
        """
        tracks = [(entry.id, entry.to_track()) for entry in playlist.tracks]
        stub_ids = [track_id for track_id, track in tracks if track is None]
        if not stub_ids:
            return tracks

        log.debug(f"Hydrating {len(stub_ids)} playlist entries")
        fetched = await self.api_client.fetch_tracks(stub_ids)
        return [
            (track_id, track if track is not None else fetched.get(track_id))
            for track_id, track in tracks
        ]

    async def download_likes(self) -> list[Path]:
        """
        Downloads the authenticated user's liked tracks within the
        configured skip/limit window.
        """
        me = await self.api_client.get_me()
        log.info(f"Fetching likes for user: [bold]{escape(me.username)}[/bold]")

        skip, limit = self.config.skip, self.config.limit
        paths: list[Path] = []
        position = skip
        async for like in self.api_client.iter_likes(
            me.id, skip=skip, limit=limit, chunk_size=self.config.chunk_size
        ):
            position += 1
            if like.decode_error is not None:
                self.stats.record_failure(
                    f"Like #{position}", DecodeFailedError(like.decode_error)
                )
                log.error(
                    f"  [red]✗ Failed:[/] Like #{position} (unreadable record: {escape(like.decode_error)})"
                )
                continue
            if like.track is None:
                log.warning(
                    f"  [yellow]⚠ Like #{position} is no longer available, skipping.[/yellow]"
                )
                continue
            path = await self._process_isolated(
                like.track, self.output_dir, f"{position}/{skip + limit}"
            )
            if path is not None:
                paths.append(path)

        if position == skip:
            log.info("No liked tracks found in the requested range.")
        return paths

    async def _process_isolated(
        self, track: Track, output_dir: Path, position: str
    ) -> Optional[Path]:
        try:
            return await self.track_processor.process_track(
                DownloadJob(track, output_dir, position)
            )
        except Exception as e:
            label = track_label(track)
            self.stats.record_failure(label, e)
            log.error(
                f"  [red]✗ Failed:[/] {escape(label)} ({escape(str(e))})",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return None
