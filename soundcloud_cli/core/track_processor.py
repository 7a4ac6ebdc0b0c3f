"""
Handles the processing of a single track, from download to tagging.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.markup import escape

from soundcloud_cli.cli.progress_manager import ProgressManager
from soundcloud_cli.exceptions import TagWriteError
from soundcloud_cli.media import EncodeProfile, FFmpegEncoder, MediaFetcher, Tagger
from soundcloud_cli.media.tagger import fetch_artwork
from soundcloud_cli.models.config import format_for_mime, get_format_info
from soundcloud_cli.models.stats import DownloadStats
from soundcloud_cli.models.track import Track
from soundcloud_cli.utils.formatting import format_size, track_label
from soundcloud_cli.utils.path import create_dir, track_file_name

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadJob:
    """One track bound for one output directory."""

    track: Track
    output_dir: Path
    position: str = ""  # e.g. "3/12", shown in log lines


class TrackProcessor:
    """
    Runs the fetch, encode and tag pipeline for one track at a time.

    Errors are not handled here: the caller decides whether a failed track
    ends the run or is only counted.
    """

    def __init__(
        self,
        stats: DownloadStats,
        fetcher: MediaFetcher,
        encoder: FFmpegEncoder,
        tagger: Tagger,
        profile: EncodeProfile,
        progress_manager: Optional[ProgressManager] = None,
    ):
        self.stats = stats
        self.fetcher = fetcher
        self.encoder = encoder
        self.tagger = tagger
        self.profile = profile
        self.progress_manager = progress_manager

    def output_path(self, track: Track, output_dir: Path) -> Path:
        """Where the track will be written, given the stream that would be used."""
        transcoding = self.fetcher.select_transcoding(track)
        source_format = format_for_mime(transcoding.format.mime_type)
        ext = get_format_info(self.profile.output_format(source_format))["ext"]
        return output_dir / track_file_name(track, ext)

    async def process_track(self, job: DownloadJob) -> Path:
        """
        Downloads, encodes and tags the job's track into its output directory.

        Returns:
            The path of the audio file, also when it already existed.
        """
        track, output_dir = job.track, job.output_dir
        label = escape(track_label(track))
        suffix = f" [dim]({job.position})[/dim]" if job.position else ""

        final_path = self.output_path(track, output_dir)
        if final_path.is_file():
            self.stats.tracks_skipped_exists += 1
            log.info(
                f"  [yellow]○ Skipping:[/] [dim]{escape(final_path.name)}[/dim] (already exists){suffix}"
            )
            return final_path

        create_dir(output_dir)
        task_id = None
        on_progress = None
        if self.progress_manager:
            task_id = self.progress_manager.add_track_task(label)

            def on_progress(completed: int, total: Optional[int]) -> None:
                self.progress_manager.update_task(task_id, completed, total)

        try:
            audio = await self.fetcher.fetch(track, on_progress)
            artwork = await fetch_artwork(self.fetcher.api_client, track)
            if task_id is not None:
                self.progress_manager.set_status(task_id, "encoding")
            await self.encoder.encode(audio.data, audio.audio_format, final_path, self.profile)
        finally:
            if task_id is not None:
                self.progress_manager.remove_task(task_id)

        output_format = self.profile.output_format(audio.audio_format)
        try:
            self.tagger.tag_file(final_path, output_format, track, artwork)
        except TagWriteError as e:
            self.stats.tags_failed += 1
            log.warning(f"  [yellow]⚠ Tags not written:[/] {label} ({escape(str(e))})")

        size = final_path.stat().st_size
        self.stats.tracks_downloaded += 1
        self.stats.total_size_downloaded += size
        log.info(
            f"  [green]✓ Downloaded:[/] {label} [dim]→ {escape(str(final_path))} "
            f"({format_size(size)})[/dim]{suffix}"
        )
        return final_path
