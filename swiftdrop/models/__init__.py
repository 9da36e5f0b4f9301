"""
Data Models Layer.

This package contains the Pydantic models for the upload policy and transfer
settings, and the dataclasses describing tasks, events and session statistics.
"""

from .policy import TransferSettings, UploadPolicy
from .stats import UploadStats
from .task import (
    FileDescriptor,
    Rejection,
    SubmissionResult,
    TaskEvent,
    TaskEventKind,
    TaskStatus,
    UploadTask,
)

__all__ = [
    "FileDescriptor",
    "Rejection",
    "SubmissionResult",
    "TaskEvent",
    "TaskEventKind",
    "TaskStatus",
    "TransferSettings",
    "UploadPolicy",
    "UploadStats",
    "UploadTask",
]
