"""
Data structures describing upload tasks, candidate files and task change events.
"""

import mimetypes
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

DataSource = Union[Path, bytes, None]

DEFAULT_MIME_TYPE = "application/octet-stream"


class TaskStatus(str, Enum):
    """Lifecycle status of an upload task."""

    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


RETRYABLE_STATUSES = frozenset({TaskStatus.ERROR, TaskStatus.CANCELLED})
TERMINAL_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.ERROR, TaskStatus.CANCELLED}
)


@dataclass(frozen=True)
class FileDescriptor:
    """A candidate file offered for upload."""

    name: str
    size: int
    mime_type: str
    source: DataSource = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"File size cannot be negative: {self.size}")

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "FileDescriptor":
        """Describes a file on disk, guessing its MIME type from the extension."""
        path = Path(path)
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            size=path.stat().st_size,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
            source=path,
        )

    @classmethod
    def from_bytes(
        cls, name: str, data: bytes, mime_type: Optional[str] = None
    ) -> "FileDescriptor":
        """Describes an in-memory payload."""
        if mime_type is None:
            mime_type = mimetypes.guess_type(name)[0] or DEFAULT_MIME_TYPE
        return cls(name=name, size=len(data), mime_type=mime_type, source=data)


@dataclass
class UploadTask:
    """One tracked upload attempt. Records handed to callers are copies."""

    id: str
    name: str
    size: int
    mime_type: str
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    uploaded_bytes: Optional[int] = None
    started_at: Optional[float] = None
    speed: Optional[float] = None
    eta_seconds: Optional[float] = None
    error: Optional[str] = None
    result_location: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    attempt: int = 0
    source: DataSource = field(default=None, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def snapshot(self) -> "UploadTask":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization (without the data handle)."""
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "mime_type": self.mime_type,
            "status": self.status.value,
            "progress": self.progress,
            "uploaded_bytes": self.uploaded_bytes,
            "started_at": self.started_at,
            "speed": self.speed,
            "eta_seconds": self.eta_seconds,
            "error": self.error,
            "result_location": self.result_location,
            "created_at": self.created_at,
            "attempt": self.attempt,
        }


@dataclass(frozen=True)
class Rejection:
    """A candidate file that failed validation, with every violation found."""

    name: str
    reasons: tuple[str, ...]

    @property
    def reason(self) -> str:
        return self.reasons[0]


@dataclass
class SubmissionResult:
    """Outcome of a submit call: admitted task ids and per-file rejections."""

    accepted: list[str] = field(default_factory=list)
    rejected: list[Rejection] = field(default_factory=list)


class TaskEventKind(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class TaskEvent:
    """A single change to a task record, as delivered to subscribers."""

    kind: TaskEventKind
    task: UploadTask
    previous_status: Optional[TaskStatus] = None

    @property
    def status_changed(self) -> bool:
        return self.previous_status is not None and self.previous_status != self.task.status
