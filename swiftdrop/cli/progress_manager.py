"""
Manages a Rich Live display for concurrent uploads.
Shows session statistics, overall progress and one bar per active upload, all
driven by task events from the scheduler.
"""

import asyncio
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
)
from rich.table import Table
from rich.text import Text

from swiftdrop.models.task import TaskEvent, TaskEventKind, TaskStatus, UploadTask
from swiftdrop.utils.formatting import file_category, format_eta, format_speed

MAX_DESCRIPTION = 40


def _shorten(name: str) -> str:
    if len(name) <= MAX_DESCRIPTION:
        return name
    return name[: MAX_DESCRIPTION - 11] + "…" + name[-10:]


class ProgressManager:
    """
    Renders upload progress. Register `handle_event` with the scheduler; the
    manager mirrors task statuses and keeps one progress bar per uploading task.
    Speed and ETA come from the task records, not from Rich's own estimates.
    """

    def __init__(self, console: Console, live: bool = True):
        self.console = console
        self.live = live

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=20),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TextColumn("{task.fields[speed]}"),
            "•",
            TextColumn("{task.fields[eta]}"),
            console=console,
            transient=False,
        )

        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            console=console,
        )
        self._overall_task_id = self.overall_progress.add_task("Overall Progress", total=0)

        self._live: Optional[Live] = None
        self._layout: Optional[Layout] = None
        self._start_time: Optional[datetime] = None

        self._statuses: dict[str, TaskStatus] = {}
        self._bars: dict[str, TaskID] = {}
        self._peak_concurrent = 0

    # ---- event handling ----

    def handle_event(self, event: TaskEvent) -> None:
        """Scheduler listener. Called synchronously for every task change."""
        task = event.task
        if event.kind == TaskEventKind.REMOVED:
            self._statuses.pop(task.id, None)
            self._drop_bar(task.id)
        else:
            self._statuses[task.id] = task.status
            if task.status == TaskStatus.UPLOADING:
                self._update_bar(task)
            else:
                self._drop_bar(task.id)
        self._update_overall()
        self._update_display()

    def _update_bar(self, task: UploadTask) -> None:
        fields = {
            "speed": format_speed(task.speed),
            "eta": format_eta(task.eta_seconds),
        }
        bar_id = self._bars.get(task.id)
        if bar_id is None:
            description = (
                f"{_shorten(task.name)} [dim]{file_category(task.mime_type)}[/dim]"
            )
            self._bars[task.id] = self.progress.add_task(
                description, total=task.size or 1, completed=0, **fields
            )
            self._peak_concurrent = max(self._peak_concurrent, len(self._bars))
            return
        completed = task.uploaded_bytes or 0
        if task.size == 0:
            completed = 0
        self.progress.update(bar_id, completed=completed, **fields)

    def _drop_bar(self, task_id: str) -> None:
        bar_id = self._bars.pop(task_id, None)
        if bar_id is not None:
            self.progress.remove_task(bar_id)

    def _update_overall(self) -> None:
        self.overall_progress.update(
            self._overall_task_id,
            total=len(self._statuses),
            completed=self.count(TaskStatus.COMPLETED)
            + self.count(TaskStatus.ERROR)
            + self.count(TaskStatus.CANCELLED),
        )

    # ---- statistics ----

    def count(self, status: TaskStatus) -> int:
        return sum(1 for s in self._statuses.values() if s == status)

    @property
    def active_bars(self) -> int:
        return len(self._bars)

    def get_statistics(self) -> dict:
        return {
            "total": len(self._statuses),
            "pending": self.count(TaskStatus.PENDING),
            "uploading": self.count(TaskStatus.UPLOADING),
            "completed": self.count(TaskStatus.COMPLETED),
            "failed": self.count(TaskStatus.ERROR),
            "cancelled": self.count(TaskStatus.CANCELLED),
            "peak_concurrent": self._peak_concurrent,
        }

    # ---- rendering ----

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="stats", size=7),
            Layout(name="progress", ratio=1),
        )
        return layout

    def _generate_header(self) -> Panel:
        if self._start_time:
            elapsed = int((datetime.now() - self._start_time).total_seconds())
            elapsed_str = f"{elapsed // 3600:02d}:{(elapsed % 3600) // 60:02d}:{elapsed % 60:02d}"
        else:
            elapsed_str = "00:00:00"
        header_text = Text()
        header_text.append("⇪ SwiftDrop ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(f"Session: {elapsed_str}", style="yellow")
        return Panel(header_text, border_style="cyan")

    def _generate_stats_panel(self) -> Panel:
        stats = self.get_statistics()
        stats_table = Table.grid(padding=(0, 2))
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        stats_table.add_row(
            "Uploaded:",
            f"[green]{stats['completed']}[/green]",
            "Failed:",
            f"[red]{stats['failed']}[/red]",
        )
        stats_table.add_row(
            "Queued:",
            f"[cyan]{stats['pending']}[/cyan]",
            "Cancelled:",
            f"[yellow]{stats['cancelled']}[/yellow]",
        )
        stats_table.add_row(
            "Active:",
            f"[cyan]{stats['uploading']}[/cyan]",
            "Peak:",
            f"[magenta]{stats['peak_concurrent']}[/magenta]",
        )
        combined = Table.grid()
        combined.add_row(stats_table)
        combined.add_row(self.overall_progress)
        return Panel(combined, title="[bold]Session Statistics[/bold]", border_style="blue")

    def _generate_progress_panel(self) -> Panel:
        if not self._bars:
            return Panel(
                Text("Waiting for uploads to start...", style="dim italic", justify="center"),
                title="[bold]Active Uploads[/bold]",
                border_style="green",
            )
        return Panel(
            self.progress,
            title=f"[bold]Active Uploads ({len(self._bars)})[/bold]",
            border_style="green",
        )

    def _update_display(self) -> None:
        if not self._layout:
            return
        self._layout["header"].update(self._generate_header())
        self._layout["stats"].update(self._generate_stats_panel())
        self._layout["progress"].update(self._generate_progress_panel())

    async def __aenter__(self):
        self._start_time = datetime.now()
        if not self.live:
            return self
        self._layout = self._create_layout()
        self._update_display()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=12,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live:
            self._update_display()
            await asyncio.sleep(0.2)
            self._live.stop()
            self._live = None
