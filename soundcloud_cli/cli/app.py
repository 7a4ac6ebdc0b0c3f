"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from soundcloud_cli import __version__
from soundcloud_cli.api.client import SoundcloudAPIClient
from soundcloud_cli.core.download_manager import DownloadManager
from soundcloud_cli.exceptions import ConfigurationError
from soundcloud_cli.media.encoder import BINARY_NAME, resolve_encoder
from soundcloud_cli.media.installer import download_ffmpeg
from soundcloud_cli.models.config import DownloadConfig
from soundcloud_cli.storage.token_store import TokenStore
from soundcloud_cli.utils.path import get_config_dir, get_data_dir

from .formatters import print_summary_panel
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("soundcloud_cli")

app = typer.Typer(
    name="soundcloud-cli",
    help=(
        "Download tracks, playlists and likes from SoundCloud. Use 'soundcloud-cli"
        " <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
FFMPEG_DIR = get_data_dir() / "ffmpeg"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    auth: Optional[str] = typer.Option(
        None,
        "-a",
        "--auth",
        envvar="SOUNDCLOUD_AUTH_TOKEN",
        help="OAuth token (the 'oauth_token' cookie of a logged-in soundcloud.com session).",
    ),
    save_token: bool = typer.Option(
        False, "-t", "--save-token", help="Persist the --auth token for later runs."
    ),
    clear_token: bool = typer.Option(
        False, "--clear-token", help="Delete the saved token."
    ),
    ffmpeg_path: Optional[str] = typer.Option(
        None, "--ffmpeg-path", help="Path to an ffmpeg binary or the directory holding it."
    ),
    output: str = typer.Option(".", "-o", "--output", help="Output directory."),
    yes: bool = typer.Option(
        False, "-y", "--yes", help="Download ffmpeg without asking when it is missing."
    ),
    audio_format: str = typer.Option(
        "auto",
        "-f",
        "--format",
        help="Output format: auto (keep the stream's codec), mp3, m4a or opus.",
    ),
    bitrate: str = typer.Option(
        "256k", "-b", "--bitrate", help="Bitrate used when re-encoding to another format."
    ),
    workers: int = typer.Option(
        3, "-w", "--workers", help="Concurrent segment downloads per track (1-16)."
    ),
    retries: int = typer.Option(
        3, "--retries", help="Attempts per request for transient network errors (1-10)."
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Enable debug logging."
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """SoundCloud Downloader CLI"""
    if version:
        console.print(f"[bold]soundcloud-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if verbose >= 1:
        logging.getLogger("soundcloud_cli").setLevel("DEBUG")

    token_store = TokenStore(CONFIG_DIR)
    if clear_token:
        token_store.clear()
        console.print("[green]✓ Saved token cleared.[/green]")

    if save_token:
        if not auth:
            raise ConfigurationError("--save-token needs a token passed with -a/--auth.")
        token_store.save(auth)
        console.print(f"[green]✓ Token saved to[/] [dim]{token_store.token_path}[/dim]")

    if ctx.invoked_subcommand is None:
        if not (clear_token or save_token):
            console.print(ctx.get_help())
        raise typer.Exit()

    ctx.obj = {
        "token": auth,
        "token_store": token_store,
        "output_dir": output,
        "audio_format": audio_format,
        "bitrate": bitrate,
        "ffmpeg_path": ffmpeg_path,
        "assume_yes": yes,
        "max_workers": workers,
        "retries": retries,
    }


def _build_config(options: dict[str, Any], **overrides: Any) -> DownloadConfig:
    settings = {
        key: value
        for key, value in options.items()
        if key not in ("token", "token_store")
    }
    settings.update(overrides)
    try:
        return DownloadConfig(**settings)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}") from e


def _require_token(options: dict[str, Any]) -> str:
    token = options["token"] or options["token_store"].load()
    if not token:
        raise ConfigurationError(
            "No token provided. Pass one with -a/--auth or save it with --save-token."
        )
    return token


def _confirm_ffmpeg_download() -> bool:
    return typer.confirm(
        f"FFmpeg was not found. Download a static build to {FFMPEG_DIR}?",
        default=True,
    )


def _run(
    ctx: typer.Context,
    operation: Callable[[DownloadManager], Awaitable[Any]],
    **overrides: Any,
) -> None:
    """Builds a session, runs one download operation and prints the summary."""
    token = _require_token(ctx.obj)
    config = _build_config(ctx.obj, **overrides)

    async def _download_async() -> DownloadManager:
        async with SoundcloudAPIClient(
            token, max_workers=config.max_workers, retries=config.retries
        ) as api_client:
            handle = await resolve_encoder(
                explicit_path=config.ffmpeg_path,
                install_dir=FFMPEG_DIR,
                download=lambda: download_ffmpeg(api_client, FFMPEG_DIR, BINARY_NAME),
                confirm_download=None if config.assume_yes else _confirm_ffmpeg_download,
            )
            log.debug(f"Using ffmpeg ({handle.source}): {handle.path}")

            with ProgressManager(console) as progress_manager:
                manager = DownloadManager(config, api_client, handle, progress_manager)
                await operation(manager)
            return manager

    try:
        manager = asyncio.run(_download_async())
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        raise typer.Exit(code=130) from None
    print_summary_panel(manager.stats, manager.elapsed, console)
    if manager.stats.has_failures:
        raise typer.Exit(code=1)


@app.command()
def track(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL of a SoundCloud track."),
):
    """Download a single track."""
    _run(ctx, lambda manager: manager.download_track(url))


@app.command()
def playlist(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL of a SoundCloud playlist or set."),
    no_m3u: bool = typer.Option(
        False, "--no-m3u", help="Do not write a .m3u file for the playlist."
    ),
):
    """Download every track of a playlist into its own folder."""
    _run(ctx, lambda manager: manager.download_playlist(url), no_m3u=no_m3u)


@app.command()
def likes(
    ctx: typer.Context,
    skip: int = typer.Option(0, "-s", "--skip", help="Number of likes to skip."),
    limit: int = typer.Option(10, "-l", "--limit", help="Number of likes to download."),
    chunk_size: int = typer.Option(
        50, "--chunk-size", help="Likes fetched per API request (1-200)."
    ),
):
    """Download your liked tracks, newest first."""
    _run(
        ctx,
        lambda manager: manager.download_likes(),
        skip=skip,
        limit=limit,
        chunk_size=chunk_size,
    )


@app.command(name="help")
def help_command(ctx: typer.Context):
    """Show this help message."""
    console.print(ctx.parent.get_help() if ctx.parent else ctx.get_help())
