"""
Entry point for `soundcloud-cli` and `python -m soundcloud_cli`.

Exit statuses: 0 on success, 1 when a command fails or any track of a run
failed, 130 when the user interrupts.
"""

import asyncio
import logging
import os
import sys
from typing import NoReturn, Optional

import typer
from rich.console import Console

from soundcloud_cli.cli.app import app
from soundcloud_cli.cli.formatters import format_error_with_suggestions
from soundcloud_cli.exceptions import SoundcloudCliError

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

log = logging.getLogger("soundcloud_cli")


def _use_utf8_streams() -> None:
    """Windows consoles default to a legacy code page that cannot print the status glyphs."""
    if os.name != "nt":
        return
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass


def _abort_with_error(
    console: Console, error: Exception, context: Optional[dict] = None
) -> NoReturn:
    console.print(f"\n{format_error_with_suggestions(error, context)}")
    log.debug("Full traceback:", exc_info=True)
    sys.exit(EXIT_FAILURE)


def main() -> None:
    _use_utf8_streams()
    console = Console(stderr=True)

    try:
        app()
    except typer.Abort:
        sys.exit(EXIT_FAILURE)
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]⚠️  Operation cancelled by user.[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except SoundcloudCliError as e:
        _abort_with_error(console, e)
    except Exception as e:
        _abort_with_error(console, e, {"type": "Unexpected"})


if __name__ == "__main__":
    main()
