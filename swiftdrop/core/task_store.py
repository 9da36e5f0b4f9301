"""
In-memory store of upload task records and the task state machine.

The store is the single source of truth for task state. Every mutation goes
through one of its methods, and every mutation is published to subscribers as a
TaskEvent carrying a copy of the record.
"""

import logging
import uuid
from typing import Callable, Optional

from swiftdrop.exceptions import InvalidStateError, TaskNotFoundError
from swiftdrop.models.task import (
    FileDescriptor,
    TaskEvent,
    TaskEventKind,
    TaskStatus,
    UploadTask,
)

from .progress import ProgressSnapshot

log = logging.getLogger(__name__)

TaskListener = Callable[[TaskEvent], None]

# Allowed status changes. Removal is possible from any status and is not listed.
_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.UPLOADING, TaskStatus.CANCELLED}),
    TaskStatus.UPLOADING: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.ERROR, TaskStatus.CANCELLED}
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.ERROR: frozenset({TaskStatus.PENDING}),
    TaskStatus.CANCELLED: frozenset({TaskStatus.PENDING}),
}

# 100% is reserved for completed tasks.
MAX_UPLOADING_PROGRESS = 99


def _new_task_id() -> str:
    return uuid.uuid4().hex


class TaskStore:
    """Mapping of task id to task record, with change notifications."""

    def __init__(self, id_factory: Callable[[], str] = _new_task_id):
        self._tasks: dict[str, UploadTask] = {}
        self._listeners: list[TaskListener] = []
        self._id_factory = id_factory

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # ---- queries ----

    def get(self, task_id: str) -> UploadTask:
        """Returns a copy of the record, or raises TaskNotFoundError."""
        return self._require(task_id).snapshot()

    def find(self, task_id: str) -> Optional[UploadTask]:
        task = self._tasks.get(task_id)
        return task.snapshot() if task else None

    def all(self) -> list[UploadTask]:
        """Copies of every record, in submission order."""
        return [task.snapshot() for task in self._tasks.values()]

    def count(self, status: TaskStatus) -> int:
        return sum(1 for task in self._tasks.values() if task.status == status)

    # ---- subscriptions ----

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        """
        Registers a listener for every record change.

        Returns:
            A callable that removes the listener. Calling it twice is harmless.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(
        self,
        kind: TaskEventKind,
        task: UploadTask,
        previous_status: Optional[TaskStatus],
    ) -> None:
        event = TaskEvent(kind=kind, task=task.snapshot(), previous_status=previous_status)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception(f"Task listener {listener!r} failed on {kind.value} event")

    # ---- mutations ----

    def add(self, file: FileDescriptor) -> UploadTask:
        """Creates a pending record for an admitted file."""
        task_id = self._id_factory()
        if task_id in self._tasks:
            raise ValueError(f"Task id factory produced a duplicate id '{task_id}'")
        task = UploadTask(
            id=task_id,
            name=file.name,
            size=file.size,
            mime_type=file.mime_type,
            source=file.source,
        )
        self._tasks[task_id] = task
        log.debug(f"Task added id={task_id} name={file.name!r} size={file.size}")
        self._publish(TaskEventKind.ADDED, task, None)
        return task.snapshot()

    def mark_uploading(self, task_id: str, started_at: float) -> int:
        """
        Moves a pending task to uploading and starts a new attempt.

        Returns:
            The attempt number. Progress and settlement calls must quote it.
        """
        task = self._require(task_id)
        previous = self._transition(task, TaskStatus.UPLOADING, "start")
        task.attempt += 1
        task.progress = 0
        task.uploaded_bytes = 0
        task.started_at = started_at
        task.speed = 0.0
        task.eta_seconds = None
        task.error = None
        task.result_location = None
        self._publish(TaskEventKind.UPDATED, task, previous)
        return task.attempt

    def apply_progress(
        self, task_id: str, attempt: int, snapshot: ProgressSnapshot
    ) -> bool:
        """Records a progress tick. Ticks from stale attempts are ignored."""
        task = self._current(task_id, attempt)
        if task is None:
            return False
        task.progress = max(
            task.progress, min(snapshot.progress, MAX_UPLOADING_PROGRESS)
        )
        task.uploaded_bytes = snapshot.uploaded_bytes
        task.speed = snapshot.speed
        task.eta_seconds = snapshot.eta_seconds
        self._publish(TaskEventKind.UPDATED, task, TaskStatus.UPLOADING)
        return True

    def complete(self, task_id: str, attempt: int, result_location: str) -> bool:
        task = self._current(task_id, attempt)
        if task is None:
            return False
        previous = self._transition(task, TaskStatus.COMPLETED, "complete")
        task.progress = 100
        task.uploaded_bytes = task.size
        task.eta_seconds = 0.0
        task.result_location = result_location
        self._publish(TaskEventKind.UPDATED, task, previous)
        return True

    def fail(self, task_id: str, attempt: int, reason: str) -> bool:
        task = self._current(task_id, attempt)
        if task is None:
            return False
        previous = self._transition(task, TaskStatus.ERROR, "fail")
        task.error = reason
        self._clear_working_state(task)
        self._publish(TaskEventKind.UPDATED, task, previous)
        return True

    def cancel(self, task_id: str, reason: str, attempt: Optional[int] = None) -> bool:
        """
        Cancels a pending or uploading task. Returns False if there was nothing to do.

        With `attempt`, only that running attempt is cancelled; a task that has
        since been retried is left alone.
        """
        if attempt is not None:
            task = self._current(task_id, attempt)
        else:
            task = self._tasks.get(task_id)
        if task is None or task.status not in (TaskStatus.PENDING, TaskStatus.UPLOADING):
            return False
        previous = self._transition(task, TaskStatus.CANCELLED, "cancel")
        task.error = reason
        self._clear_working_state(task)
        self._publish(TaskEventKind.UPDATED, task, previous)
        return True

    def reset_for_retry(self, task_id: str) -> UploadTask:
        """Returns a failed or cancelled task to pending, keeping its id."""
        task = self._require(task_id)
        previous = self._transition(task, TaskStatus.PENDING, "retry")
        task.progress = 0
        task.error = None
        task.result_location = None
        self._clear_working_state(task)
        self._publish(TaskEventKind.UPDATED, task, previous)
        return task.snapshot()

    def remove(self, task_id: str) -> Optional[UploadTask]:
        task = self._tasks.pop(task_id, None)
        if task is None:
            return None
        self._publish(TaskEventKind.REMOVED, task, task.status)
        return task.snapshot()

    # ---- helpers ----

    def _require(self, task_id: str) -> UploadTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _current(self, task_id: str, attempt: int) -> Optional[UploadTask]:
        """The live record if `attempt` is still the task's running attempt."""
        task = self._tasks.get(task_id)
        if task is None or task.attempt != attempt or task.status != TaskStatus.UPLOADING:
            log.debug(f"Ignoring update for superseded attempt {attempt} of task {task_id}")
            return None
        return task

    @staticmethod
    def _transition(task: UploadTask, status: TaskStatus, action: str) -> TaskStatus:
        if status not in _TRANSITIONS[task.status]:
            raise InvalidStateError(task.id, task.status.value, action)
        previous = task.status
        task.status = status
        return previous

    @staticmethod
    def _clear_working_state(task: UploadTask) -> None:
        task.uploaded_bytes = None
        task.started_at = None
        task.speed = None
        task.eta_seconds = None
