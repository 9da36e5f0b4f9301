"""
Entry point for the ``swiftdrop`` console script.

Errors that escape the typer app are reported in a panel and mapped to an
exit code: 1 for upload and settings problems, 2 for commands that name a task
that does not exist or cannot take the action, 130 when the user interrupts
the upload session.
"""

import asyncio
import logging
import os
import sys
from typing import Optional

import typer
from rich.console import Console

from swiftdrop.cli.app import app
from swiftdrop.cli.formatters import format_error_with_suggestions
from swiftdrop.exceptions import (
    ConfigurationError,
    InvalidStateError,
    SwiftDropError,
    TaskNotFoundError,
    UploadValidationError,
)
from swiftdrop.storage.settings_store import default_settings_path

EXIT_FAILURE = 1
EXIT_TASK_MISUSE = 2
EXIT_INTERRUPTED = 130

log = logging.getLogger("swiftdrop")


def _error_context(error: SwiftDropError) -> Optional[dict]:
    """Extra facts that help the user act on an error."""
    if isinstance(error, ConfigurationError):
        return {"default settings file": default_settings_path()}
    if isinstance(error, InvalidStateError):
        return {"task": error.task_id, "status": error.status}
    if isinstance(error, TaskNotFoundError):
        return {"task": error.task_id}
    if isinstance(error, UploadValidationError):
        return {"file": error.name, "reasons": "; ".join(error.reasons)}
    return None


def _exit_code(error: SwiftDropError) -> int:
    if isinstance(error, (TaskNotFoundError, InvalidStateError)):
        return EXIT_TASK_MISUSE
    return EXIT_FAILURE


def main() -> None:
    # The progress display and summaries print symbols the legacy Windows codepage lacks.
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print(
            "\n[yellow]⚠️  Upload session interrupted. "
            "Unfinished uploads were not completed.[/yellow]"
        )
        sys.exit(EXIT_INTERRUPTED)
    except SwiftDropError as e:
        console.print(format_error_with_suggestions(e, _error_context(e)))
        sys.exit(_exit_code(e))
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
