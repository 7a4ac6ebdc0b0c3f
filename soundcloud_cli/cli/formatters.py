"""
Functions for formatting and displaying data in the console using Rich.
"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from soundcloud_cli.models.stats import DownloadStats
from soundcloud_cli.utils.formatting import format_duration, format_size

SUGGESTIONS = {
    "ConfigurationError": [
        "• Pass a token with -a/--auth or set SOUNDCLOUD_AUTH_TOKEN.",
        "• Save it for later runs with -a <TOKEN> --save-token.",
    ],
    "UnauthorizedError": [
        "• Your token may have expired. Copy a fresh 'oauth_token' cookie from soundcloud.com.",
        "• Save the new token with -a <TOKEN> --save-token.",
        "• Private tracks are only visible to accounts that have access.",
    ],
    "InvalidUrlError": [
        "• Use a full soundcloud.com link, e.g. https://soundcloud.com/<user>/<track>.",
        "• Use the 'track' command for tracks and 'playlist' for sets.",
    ],
    "NotFoundError": [
        "• The track or playlist may have been deleted or made private.",
        "• Double-check the URL in a browser.",
    ],
    "RateLimitedError": [
        "• SoundCloud is throttling requests. Wait a few minutes.",
        "• Reduce segment concurrency with -w/--workers.",
    ],
    "RequestFailedError": [
        "• A network connection issue occurred.",
        "• The SoundCloud API might be temporarily unavailable.",
        "• Increase --retries for flaky connections.",
    ],
    "SegmentFetchError": [
        "• A stream segment could not be downloaded. Try again.",
        "• Reduce -w/--workers if the connection is unstable.",
    ],
    "NoTranscodingError": [
        "• The track may be a preview for your account (e.g. Go+ content).",
        "• The uploader may have disabled streaming for this track.",
    ],
    "EncoderUnavailableError": [
        "• Install ffmpeg and make sure it is on your PATH.",
        "• Or point to a binary with --ffmpeg-path.",
        "• Or pass -y to allow downloading a static build.",
    ],
    "EncodeFailedError": [
        "• Check that your ffmpeg build supports the requested format.",
        "• Try again with -f auto to keep the original codec.",
    ],
}


def format_error_with_suggestions(
    error: Exception, context: Optional[dict] = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    suggestions = SUGGESTIONS.get(error_type, ["• Run the command with -v for detailed logs."])

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(str(error))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_summary_panel(stats: DownloadStats, duration_s: float, console: Optional[Console] = None):
    """Displays the final summary of the download session."""
    console = console or Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=16)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.tracks_downloaded}[/bold green]"
    )
    if stats.tracks_skipped_exists > 0:
        stats_table.add_row(
            "○ Skipped:", f"[yellow]{stats.tracks_skipped_exists} (exists)[/yellow]"
        )
    if stats.tags_failed > 0:
        stats_table.add_row("⚠ Untagged:", f"[yellow]{stats.tags_failed}[/yellow]")
    if stats.tracks_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.tracks_failed}[/bold red]")

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.has_failures:
        title = "⚠ [bold]Finished with Errors[/bold]"
        border_color = "yellow"
    else:
        title = "🎵 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )

    if stats.failures:
        failures_table = Table(box=box.SIMPLE, show_header=True, header_style="bold red")
        failures_table.add_column("Track")
        failures_table.add_column("Error", style="dim")
        for label, reason in stats.failures:
            failures_table.add_row(escape(label), escape(reason))
        console.print(failures_table)

    console.print()
