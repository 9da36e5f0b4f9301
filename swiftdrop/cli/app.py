"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from swiftdrop import __version__
from swiftdrop.core.scheduler import UploadScheduler
from swiftdrop.core.validator import validate
from swiftdrop.exceptions import ConfigurationError, SwiftDropError
from swiftdrop.models.policy import TransferSettings, UploadPolicy
from swiftdrop.models.task import FileDescriptor, TaskStatus
from swiftdrop.storage.settings_store import SettingsStore, default_settings_path
from swiftdrop.transfer import HttpTransferEngine, SimulatedTransferEngine, TransferEngine
from swiftdrop.utils.structured_logger import create_structured_logger

from .formatters import (
    print_check_table,
    print_failures_table,
    print_settings,
    print_summary_panel,
)
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
log = logging.getLogger("swiftdrop")

app = typer.Typer(
    name="swiftdrop",
    help=(
        "Upload files concurrently with size and type checks, live progress and"
        " retries. Use 'swiftdrop <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def _settings_store(ctx: typer.Context) -> SettingsStore:
    path = (ctx.obj or {}).get("settings_path") or default_settings_path()
    return SettingsStore(path)


def _collect_files(paths: list[Path]) -> list[FileDescriptor]:
    """Expands directories recursively and describes every regular file found."""
    files = []
    for path in paths:
        if path.is_dir():
            files.extend(
                FileDescriptor.from_path(p) for p in sorted(path.rglob("*")) if p.is_file()
            )
        else:
            files.append(FileDescriptor.from_path(path))
    return files


def _build_engine(transfer: TransferSettings, policy: UploadPolicy) -> TransferEngine:
    if transfer.engine == "http":
        return HttpTransferEngine(
            transfer.upload_url,
            field_name=transfer.field_name,
            max_attempts=transfer.max_attempts,
            auto_compress=policy.auto_compress,
            timeout_seconds=transfer.timeout_seconds,
            max_connections=policy.max_concurrent_uploads,
        )
    return SimulatedTransferEngine(failure_rate=transfer.failure_rate)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug, -vv to include libraries).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", help="Use this settings file instead of the default one."
    ),
):
    """SwiftDrop upload CLI"""
    if version:
        console.print(f"[bold]swiftdrop[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("swiftdrop").setLevel("DEBUG" if verbose >= 1 else "INFO")
    if verbose >= 2:
        logging.getLogger().setLevel("DEBUG")

    ctx.obj = {"settings_path": config or default_settings_path()}

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def upload(
    ctx: typer.Context,
    paths: list[Path] = typer.Argument(  # noqa: B008
        ..., exists=True, readable=True, help="Files or directories to upload."
    ),
    simulate: bool = typer.Option(
        False, "--simulate", help="Use the simulated transfer engine."
    ),
    url: Optional[str] = typer.Option(
        None, "--url", help="Upload endpoint; selects the HTTP engine."
    ),
    workers: Optional[int] = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous uploads."
    ),
    max_size: Optional[int] = typer.Option(
        None, "--max-size", help="Largest accepted file, in bytes."
    ),
    types: Optional[list[str]] = typer.Option(  # noqa: B008
        None, "-t", "--type", help="Accepted MIME type. Repeat for several types."
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries", help="Rounds of automatic retries for failed uploads."
    ),
    log_json: Optional[Path] = typer.Option(
        None, "--log-json", help="Write JSON lifecycle logs to this directory."
    ),
):
    """Upload files."""
    overrides: dict[str, Any] = {
        "max_file_size": max_size,
        "allowed_types": types or None,
        "max_concurrent_uploads": workers,
        "auto_retries": retries,
        "upload_url": url,
    }
    if simulate:
        overrides["engine"] = "simulated"
    elif url:
        overrides["engine"] = "http"

    try:
        policy, transfer = _settings_store(ctx).load(overrides)
        files = _collect_files(paths)
    except SwiftDropError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e

    if not files:
        console.print("[yellow]⚠️  No files found to upload.[/yellow]")
        raise typer.Exit(code=1)

    engine = _build_engine(transfer, policy)

    async def _upload_async():
        base_logger, events = create_structured_logger(log_json, enable_json=log_json is not None)
        try:
            async with ProgressManager(console, live=console.is_terminal) as progress:
                async with UploadScheduler(engine, policy) as scheduler:
                    scheduler.subscribe(progress.handle_event)
                    events.attach(scheduler)
                    events.session_started(
                        len(files), policy.max_concurrent_uploads, transfer.engine
                    )
                    start_time = time.monotonic()

                    result = scheduler.submit(files)
                    for rejection in result.rejected:
                        events.file_rejected(rejection)
                    await scheduler.join()

                    for round_no in range(1, transfer.auto_retries + 1):
                        failed = [t.id for t in scheduler.tasks() if t.status == TaskStatus.ERROR]
                        if not failed:
                            break
                        log.info(
                            f"[cyan]Retrying {len(failed)} failed upload(s) "
                            f"(round {round_no}/{transfer.auto_retries})...[/cyan]"
                        )
                        for task_id in failed:
                            scheduler.retry(task_id)
                        await scheduler.join()

                    duration = time.monotonic() - start_time
                    stats = scheduler.stats()
                    unfinished = [
                        t for t in scheduler.tasks()
                        if t.status in (TaskStatus.ERROR, TaskStatus.CANCELLED)
                    ]
                    events.session_completed(
                        duration, stats.completed, stats.failed, stats.cancelled,
                        stats.bytes_uploaded,
                    )
        finally:
            if isinstance(engine, HttpTransferEngine):
                await engine.close()
            base_logger.close()

        print_failures_table(unfinished, result.rejected)
        print_summary_panel(stats, duration)
        return not result.rejected and not stats.errors

    if not asyncio.run(_upload_async()):
        raise typer.Exit(code=1)


@app.command()
def check(
    ctx: typer.Context,
    paths: list[Path] = typer.Argument(  # noqa: B008
        ..., exists=True, readable=True, help="Files or directories to check."
    ),
    max_size: Optional[int] = typer.Option(
        None, "--max-size", help="Largest accepted file, in bytes."
    ),
    types: Optional[list[str]] = typer.Option(  # noqa: B008
        None, "-t", "--type", help="Accepted MIME type. Repeat for several types."
    ),
):
    """Check files against the upload policy without uploading them."""
    try:
        policy, _ = _settings_store(ctx).load(
            {"max_file_size": max_size, "allowed_types": types or None}
        )
        files = _collect_files(paths)
    except SwiftDropError as e:
        console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        raise typer.Exit(code=1) from e

    verdicts = [(file, validate(file, policy)) for file in files]
    print_check_table(verdicts)
    rejected = sum(1 for _, violations in verdicts if violations)
    if rejected:
        console.print(f"[red]✗ {rejected} of {len(verdicts)} file(s) would be rejected.[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ All {len(verdicts)} file(s) are accepted.[/green]")


@app.command(name="config")
def config_command(
    ctx: typer.Context,
    max_size: Optional[int] = typer.Option(
        None, "--max-size", help="Largest accepted file, in bytes."
    ),
    types: Optional[list[str]] = typer.Option(  # noqa: B008
        None, "-t", "--type", help="Accepted MIME type. Repeat for several types."
    ),
    workers: Optional[int] = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous uploads."
    ),
    auto_compress: Optional[bool] = typer.Option(
        None,
        "--auto-compress/--no-auto-compress",
        help="Compress text-like files on the fly (HTTP engine).",
    ),
    url: Optional[str] = typer.Option(None, "--url", help="Default upload endpoint."),
    engine: Optional[str] = typer.Option(
        None, "--engine", help="Default transfer engine: 'http' or 'simulated'."
    ),
):
    """Show the settings, or save new values when options are given."""
    store = _settings_store(ctx)
    policy_changes = {
        key: value
        for key, value in {
            "max_file_size": max_size,
            "allowed_types": types or None,
            "max_concurrent_uploads": workers,
            "auto_compress": auto_compress,
        }.items()
        if value is not None
    }
    transfer_changes = {
        key: value
        for key, value in {"upload_url": url, "engine": engine}.items()
        if value is not None
    }

    try:
        policy, transfer = store.load()
        if policy_changes or transfer_changes:
            policy = policy.merged(policy_changes)
            try:
                transfer = TransferSettings.model_validate(
                    {**transfer.model_dump(), **transfer_changes}
                )
            except ValidationError as e:
                raise ConfigurationError(f"Invalid transfer settings:\n{e}") from e
            store.save(policy, transfer)
            console.print(f"[bold green]✓ Settings saved to '{store.path}'[/bold green]")
    except SwiftDropError as e:
        console.print(f"[red]✗ Settings are invalid: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from e

    print_settings(store.path, policy, transfer)
