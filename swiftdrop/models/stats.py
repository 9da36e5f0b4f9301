"""
Dataclass summarizing the state of an upload session.
"""

from dataclasses import dataclass
from typing import Iterable

from .task import TaskStatus, UploadTask


@dataclass
class UploadStats:
    """Counts tasks per status and totals the bytes of finished uploads."""

    total: int = 0
    pending: int = 0
    uploading: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    bytes_uploaded: int = 0
    peak_concurrent: int = 0

    @property
    def errors(self) -> int:
        """Failed and cancelled uploads, both of which can be retried."""
        return self.failed + self.cancelled

    @property
    def finished(self) -> bool:
        return self.pending == 0 and self.uploading == 0

    @classmethod
    def from_tasks(
        cls, tasks: Iterable[UploadTask], peak_concurrent: int = 0
    ) -> "UploadStats":
        stats = cls(peak_concurrent=peak_concurrent)
        for task in tasks:
            stats.total += 1
            if task.status == TaskStatus.PENDING:
                stats.pending += 1
            elif task.status == TaskStatus.UPLOADING:
                stats.uploading += 1
            elif task.status == TaskStatus.COMPLETED:
                stats.completed += 1
                stats.bytes_uploaded += task.size
            elif task.status == TaskStatus.ERROR:
                stats.failed += 1
            elif task.status == TaskStatus.CANCELLED:
                stats.cancelled += 1
        return stats
