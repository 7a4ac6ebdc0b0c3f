"""
Manages Rich progress bars for the track currently being downloaded.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from soundcloud_cli.utils.formatting import format_size


class ProgressManager:
    """
    Wraps a `rich.progress.Progress` display.

    Progressive streams report bytes received with no known total, which
    shows as a pulsing bar; HLS streams report finished segments out of the
    segment count.
    """

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            TextColumn("[dim]{task.fields[detail]}[/dim]"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
            disable=not enabled,
        )

    def __enter__(self) -> "ProgressManager":
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()

    def add_track_task(self, description: str) -> TaskID:
        return self.progress.add_task(description, total=None, detail="")

    def update_task(self, task_id: TaskID, completed: int, total: Optional[int]) -> None:
        if total is None:
            self.progress.update(task_id, completed=completed, detail=format_size(completed))
        else:
            self.progress.update(
                task_id,
                completed=completed,
                total=total,
                detail=f"{completed}/{total} segments",
            )

    def set_status(self, task_id: TaskID, status: str) -> None:
        self.progress.update(task_id, detail=status)

    def remove_task(self, task_id: TaskID) -> None:
        self.progress.remove_task(task_id)
