"""
Core scheduling engine for the upload queue.

The `UploadScheduler` is the only component that mutates task state. It
validates submissions, keeps waiting work in the `AdmissionQueue`, records
every change in the `TaskStore` and hands dispatched tasks to a transfer engine.
"""

from .admission_queue import AdmissionQueue
from .progress import ProgressReporter, ProgressSnapshot, estimate
from .scheduler import UploadScheduler
from .task_store import TaskListener, TaskStore
from .validator import check_files, ensure_valid, validate

__all__ = [
    "AdmissionQueue",
    "ProgressReporter",
    "ProgressSnapshot",
    "TaskListener",
    "TaskStore",
    "UploadScheduler",
    "check_files",
    "ensure_valid",
    "estimate",
    "validate",
]
