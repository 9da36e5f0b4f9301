"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Iterable, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from swiftdrop.models.policy import TransferSettings, UploadPolicy
from swiftdrop.models.stats import UploadStats
from swiftdrop.models.task import FileDescriptor, Rejection, UploadTask
from swiftdrop.utils.formatting import file_category, format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: Optional[dict] = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your settings file.",
            "• Run `swiftdrop config` to see the settings in effect.",
            "• Delete the settings file to fall back to the defaults.",
        ],
        "UploadValidationError": [
            "• Raise the size limit with `--max-size`.",
            "• Allow the file's MIME type with `--type`.",
        ],
        "TaskNotFoundError": [
            "• The task may have been removed or cleared after it completed.",
            "• Task ids are only valid within the upload session that created them.",
        ],
        "InvalidStateError": [
            "• Only failed or cancelled uploads can be retried.",
            "• Wait for a running upload to settle before acting on it again.",
        ],
        "TransferError": [
            "• Check that the upload endpoint is reachable.",
            "• Failed uploads can be retried with `--retries N`.",
        ],
        "ClientConnectorError": [
            "• A network connection issue occurred.",
            "• Verify the upload URL and your internet connection.",
        ],
        "TimeoutError": [
            "• An upload timed out, which may indicate network throttling.",
            "• Try reducing the number of `--workers`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(
            Text("\n".join(f"{key}: {value}" for key, value in context.items()), style="dim")
        )

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_settings(settings_path: Path, policy: UploadPolicy, transfer: TransferSettings):
    """Displays the settings in effect."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Max File Size:", f"{format_size(policy.max_file_size)} ({policy.max_file_size} B)")
    table.add_row("Allowed Types:", escape(", ".join(sorted(policy.allowed_types))))
    table.add_row("Max Concurrent:", str(policy.max_concurrent_uploads))
    table.add_row("Auto Compress:", "✓ Enabled" if policy.auto_compress else "✗ Disabled")
    table.add_row("", "")
    table.add_row("Engine:", transfer.engine)
    table.add_row("Upload URL:", f"[dim]{escape(transfer.upload_url) or '-'}[/dim]")
    table.add_row("Max Attempts:", str(transfer.max_attempts))
    table.add_row("Auto Retries:", str(transfer.auto_retries))

    console.print(
        Panel(
            table,
            title=f"Settings ([dim]{escape(str(settings_path))}[/dim])",
            border_style="cyan",
        )
    )


def print_check_table(verdicts: Iterable[tuple[FileDescriptor, list[str]]]):
    """Displays whether each file would be accepted under the current policy."""
    console = Console()
    table = Table(box=box.ROUNDED)
    table.add_column("File", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Type")
    table.add_column("Verdict")

    for file, violations in verdicts:
        verdict = (
            "[green]✓ accepted[/green]"
            if not violations
            else f"[red]✗ {escape('; '.join(violations))}[/red]"
        )
        table.add_row(
            escape(file.name),
            format_size(file.size),
            f"{escape(file.mime_type)} [dim]({file_category(file.mime_type)})[/dim]",
            verdict,
        )
    console.print(table)


def print_failures_table(tasks: Iterable[UploadTask], rejections: Iterable[Rejection] = ()):
    """Lists every file that did not make it, with its reason."""
    rows = [(r.name, "rejected", "; ".join(r.reasons)) for r in rejections]
    rows += [(t.name, t.status.value, t.error or "") for t in tasks]
    if not rows:
        return

    console = Console()
    table = Table(title="Not Uploaded", box=box.SIMPLE)
    table.add_column("File", style="cyan")
    table.add_column("Status", style="yellow")
    table.add_column("Reason", style="red")
    for name, status, reason in rows:
        table.add_row(escape(name), status, escape(reason))
    console.print(table)


def print_summary_panel(stats: UploadStats, duration_s: float):
    """Displays the final summary of the upload session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Uploaded:", f"[bold green]{stats.completed}[/bold green]")
    if stats.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.failed}[/bold red]")
    if stats.cancelled > 0:
        stats_table.add_row("○ Cancelled:", f"[yellow]{stats.cancelled}[/yellow]")

    stats_table.add_row("", "")
    stats_table.add_row("Total Size:", f"[cyan]{format_size(stats.bytes_uploaded)}[/cyan]")
    avg_speed = stats.bytes_uploaded / duration_s if duration_s > 0 else 0
    stats_table.add_row("Avg. Speed:", f"[magenta]{format_size(int(avg_speed))}/s[/magenta]")
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")
    stats_table.add_row("Peak Concurrent:", f"[green]{stats.peak_concurrent}[/green]")

    if stats.errors:
        title = "⇪ [bold]Upload Finished With Errors[/bold]"
        border_color = "yellow"
    else:
        title = "⇪ [bold]Upload Complete![/bold]"
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
    console.print()
