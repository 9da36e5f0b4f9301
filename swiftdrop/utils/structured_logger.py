"""
Structured logging of upload lifecycle events.
Writes JSON lines alongside the regular console log for later analysis.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

from swiftdrop.models.task import Rejection, TaskEvent, TaskEventKind, TaskStatus

if TYPE_CHECKING:
    from swiftdrop.core.scheduler import UploadScheduler


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("swiftdrop", log_dir=Path("logs"))
        logger.info("task_completed", task_id="3f2a", size_bytes=1048576)
    """

    def __init__(
        self,
        name: str,
        log_dir: Optional[Path] = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Mirror events to the standard logger
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        self.json_log_path: Optional[Path] = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"swiftdrop_{timestamp}.jsonl"
            self._json_file = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Added to every entry
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        parts.extend(f"{key}={value}" for key, value in context.items())
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, TypeError, ValueError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self.log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self.log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self.log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self.log(logging.ERROR, event, **context)

    def close(self) -> None:
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class UploadEventLogger:
    """Turns scheduler task events into lifecycle log entries."""

    def __init__(self, logger: StructuredLogger, clock: Callable[[], float] = time.time):
        self.logger = logger
        self._clock = clock

    def attach(self, scheduler: "UploadScheduler") -> Callable[[], None]:
        """Subscribes to the scheduler; returns the unsubscribe handle."""
        return scheduler.subscribe(self.handle_event)

    def handle_event(self, event: TaskEvent) -> None:
        task = event.task
        if event.kind == TaskEventKind.ADDED:
            self.logger.info(
                "task_queued",
                task_id=task.id,
                name=task.name,
                size_bytes=task.size,
                mime_type=task.mime_type,
            )
        elif event.kind == TaskEventKind.REMOVED:
            self.logger.info("task_removed", task_id=task.id, status=task.status.value)
        elif event.status_changed:
            self._status_changed(event)

    def _status_changed(self, event: TaskEvent) -> None:
        task = event.task
        if task.status == TaskStatus.UPLOADING:
            self.logger.info(
                "task_started", task_id=task.id, name=task.name, attempt=task.attempt
            )
        elif task.status == TaskStatus.COMPLETED:
            duration = max(self._clock() - task.started_at, 0.0) if task.started_at else 0.0
            self.logger.info(
                "task_completed",
                task_id=task.id,
                name=task.name,
                size_bytes=task.size,
                duration_s=round(duration, 2),
                avg_speed_bps=round(task.size / duration, 2) if duration else None,
                location=task.result_location,
            )
        elif task.status == TaskStatus.ERROR:
            self.logger.error(
                "task_failed",
                task_id=task.id,
                name=task.name,
                error=task.error,
                attempt=task.attempt,
            )
        elif task.status == TaskStatus.CANCELLED:
            self.logger.warning(
                "task_cancelled", task_id=task.id, name=task.name, reason=task.error
            )
        elif task.status == TaskStatus.PENDING:
            self.logger.info(
                "task_retried",
                task_id=task.id,
                name=task.name,
                previous_status=event.previous_status.value if event.previous_status else None,
            )

    def file_rejected(self, rejection: Rejection) -> None:
        self.logger.warning(
            "file_rejected", name=rejection.name, reasons=list(rejection.reasons)
        )

    def session_started(self, total_files: int, max_concurrent: int, engine: str) -> None:
        self.logger.info(
            "session_started",
            total_files=total_files,
            max_concurrent=max_concurrent,
            engine=engine,
        )

    def session_completed(
        self, duration_s: float, completed: int, failed: int, cancelled: int, bytes_uploaded: int
    ) -> None:
        self.logger.info(
            "session_completed",
            duration_s=round(duration_s, 2),
            completed=completed,
            failed=failed,
            cancelled=cancelled,
            bytes_uploaded=bytes_uploaded,
        )


def create_structured_logger(
    log_dir: Optional[Path] = None, enable_json: bool = False, enable_console: bool = False
) -> tuple[StructuredLogger, UploadEventLogger]:
    """
    Create the structured loggers.

    Returns:
        Tuple of (base_logger, upload_logger)
    """
    base = StructuredLogger(
        "swiftdrop.events",
        log_dir=log_dir,
        enable_json=enable_json,
        enable_console=enable_console,
    )
    return base, UploadEventLogger(base)
