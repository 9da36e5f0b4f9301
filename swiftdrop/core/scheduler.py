"""
The upload scheduler: admission control, bounded-concurrency dispatch and
settlement of upload tasks.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from rich.markup import escape

from swiftdrop.exceptions import TransferAborted, TransferError
from swiftdrop.models.policy import UploadPolicy
from swiftdrop.models.stats import UploadStats
from swiftdrop.models.task import FileDescriptor, SubmissionResult, TaskStatus, UploadTask
from swiftdrop.transfer.base import (
    DEFAULT_ABORT_REASON,
    AbortSignal,
    PolicyAwareEngine,
    TransferEngine,
)

from .admission_queue import AdmissionQueue
from .progress import ProgressReporter
from .task_store import TaskListener, TaskStore
from .validator import check_files

log = logging.getLogger(__name__)

REMOVED_REASON = "Upload removed"
SHUTDOWN_REASON = "Upload interrupted by shutdown"


@dataclass
class _RunningTransfer:
    attempt: int
    abort: AbortSignal
    job: Optional[asyncio.Task] = None


class UploadScheduler:
    """
    Orchestrates the upload queue.

    Accepted files become pending tasks in the TaskStore and wait in the
    AdmissionQueue. Whenever capacity may have changed the queue is drained
    into free slots of the concurrency budget, and each dispatched task runs on
    the transfer engine as its own asyncio task.

    All public methods must be called from the thread running the event loop.
    Drain, dispatch and settlement never suspend, so slot accounting cannot
    interleave and the number of uploads in flight never exceeds the budget.
    """

    def __init__(
        self,
        engine: TransferEngine,
        policy: Optional[UploadPolicy] = None,
        store: Optional[TaskStore] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self._policy = policy or UploadPolicy()
        self._store = store or TaskStore()
        self._queue = AdmissionQueue()
        self._clock = clock
        self._wall_clock = wall_clock

        self._active_count = 0
        self._peak_active = 0
        self._running: dict[str, _RunningTransfer] = {}
        self._inflight: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False
        self._draining = False

        if isinstance(engine, PolicyAwareEngine):
            engine.apply_policy(self._policy)

    # ---- introspection ----

    @property
    def policy(self) -> UploadPolicy:
        return self._policy

    @property
    def active_count(self) -> int:
        """Transfers currently holding a concurrency slot."""
        return self._active_count

    @property
    def peak_concurrent(self) -> int:
        return self._peak_active

    def get(self, task_id: str) -> UploadTask:
        return self._store.get(task_id)

    def tasks(self) -> list[UploadTask]:
        return self._store.all()

    def queued(self) -> list[str]:
        """Ids waiting for a slot, in the order they will be offered one."""
        return self._queue.snapshot()

    def stats(self) -> UploadStats:
        return UploadStats.from_tasks(self._store.all(), peak_concurrent=self._peak_active)

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        """Registers a listener for every task change; returns the unsubscribe handle."""
        return self._store.subscribe(listener)

    # ---- control plane ----

    def submit(self, files: Iterable[FileDescriptor]) -> SubmissionResult:
        """
        Validates candidate files and queues the admissible ones.

        Invalid files never raise; they are returned as rejections.
        """
        if self._closed:
            raise RuntimeError("Cannot submit files to a closed scheduler.")

        admissible, rejections = check_files(files, self._policy)
        result = SubmissionResult(rejected=rejections)
        for rejection in rejections:
            log.warning(
                f"[yellow]○ Rejected '{escape(rejection.name)}': {rejection.reason}[/yellow]"
            )

        for file in admissible:
            task = self._store.add(file)
            self._queue.enqueue(task.id)
            result.accepted.append(task.id)

        if result.accepted:
            self._idle.clear()
            log.info(f"Added {len(result.accepted)} file(s) to the upload queue.")
        self._drain()
        return result

    def retry(self, task_id: str) -> None:
        """
        Re-queues a failed or cancelled task at the back of the queue.

        Raises:
            TaskNotFoundError: If the task does not exist.
            InvalidStateError: If the task is not in error or cancelled.
        """
        if self._closed:
            raise RuntimeError("Cannot retry tasks on a closed scheduler.")
        task = self._store.reset_for_retry(task_id)
        self._queue.enqueue(task_id)
        self._idle.clear()
        log.info(f"Retrying '{escape(task.name)}'")
        self._drain()

    def cancel(self, task_id: str, reason: str = DEFAULT_ABORT_REASON) -> None:
        """Cancels a pending or uploading task. Does nothing for terminal or unknown ids."""
        task = self._store.find(task_id)
        if task is None or task.is_terminal:
            return

        if task.status == TaskStatus.PENDING:
            self._queue.remove(task_id)
        else:
            running = self._running.pop(task_id, None)
            if running is not None:
                running.abort.abort(reason)

        if self._store.cancel(task_id, reason):
            log.info(f"[yellow]Cancelled '{escape(task.name)}'[/yellow]")
        self._check_idle()

    def remove(self, task_id: str) -> None:
        """Deletes a task record, aborting its transfer if one is running."""
        self._queue.remove(task_id)
        running = self._running.pop(task_id, None)
        if running is not None:
            running.abort.abort(REMOVED_REASON)
        if removed := self._store.remove(task_id):
            log.debug(f"Removed task {task_id} ({removed.status.value})")
        self._check_idle()

    def clear_completed(self) -> int:
        """Removes every completed task. Returns how many were removed."""
        completed = [t.id for t in self._store.all() if t.status == TaskStatus.COMPLETED]
        for task_id in completed:
            self._store.remove(task_id)
        if completed:
            log.info(f"Cleared {len(completed)} completed upload(s).")
        return len(completed)

    def set_policy(self, changes: Mapping[str, Any]) -> UploadPolicy:
        """
        Applies a partial policy update to future validation and dispatch.

        Running transfers are never preempted when the budget shrinks.

        Raises:
            ConfigurationError: If the merged policy is invalid.
        """
        policy = self._policy.merged(changes)
        self._policy = policy
        if isinstance(self.engine, PolicyAwareEngine):
            self.engine.apply_policy(policy)
        log.debug(f"Upload policy updated: {policy!r}")
        self._drain()
        return policy

    async def join(self) -> None:
        """Waits until the queue is empty and no transfer is in flight."""
        await self._idle.wait()

    async def aclose(self) -> None:
        """Cancels queued tasks, aborts running transfers and waits for them to settle."""
        self._closed = True
        for task_id in self._queue.drain(len(self._queue)):
            self._store.cancel(task_id, SHUTDOWN_REASON)
        for running in list(self._running.values()):
            running.abort.abort(SHUTDOWN_REASON)
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        self._check_idle()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    # ---- dispatch ----

    def _drain(self) -> None:
        """Starts queued tasks while the concurrency budget has free slots."""
        if self._closed or self._draining:
            return
        # Listeners run inside dispatch; a drain they trigger is left to this loop.
        self._draining = True
        try:
            while (
                not self._closed
                and self._queue
                and self._active_count < self._policy.max_concurrent_uploads
            ):
                for task_id in self._queue.drain(1):
                    self._dispatch(task_id)
        finally:
            self._draining = False
        self._check_idle()

    def _dispatch(self, task_id: str) -> None:
        # The slot and the abort handle exist before listeners hear of the start.
        self._active_count += 1
        running = _RunningTransfer(attempt=0, abort=AbortSignal())
        self._running[task_id] = running
        running.attempt = self._store.mark_uploading(task_id, started_at=self._wall_clock())

        task = self._store.find(task_id)
        if (
            running.abort.aborted
            or task is None
            or task.status != TaskStatus.UPLOADING
            or task.attempt != running.attempt
        ):
            self._active_count -= 1
            if self._running.get(task_id) is running:
                del self._running[task_id]
            log.debug(f"Task {task_id} left uploading before its transfer started")
            return

        self._peak_active = max(self._peak_active, self._active_count)
        reporter = ProgressReporter(task.size, clock=self._clock)
        running.job = asyncio.create_task(
            self._run_transfer(task, running, reporter), name=f"upload-{task_id}"
        )
        self._inflight.add(running.job)
        running.job.add_done_callback(self._inflight.discard)
        self._idle.clear()
        log.debug(
            f"Dispatched '{task.name}' attempt={running.attempt} "
            f"active={self._active_count}/{self._policy.max_concurrent_uploads}"
        )

    async def _run_transfer(
        self, task: UploadTask, running: _RunningTransfer, reporter: ProgressReporter
    ) -> None:
        abort = running.abort

        def on_progress(uploaded_bytes: int) -> None:
            if not abort.aborted:
                self._store.apply_progress(
                    task.id, running.attempt, reporter.update(uploaded_bytes)
                )

        location: Optional[str] = None
        error: Optional[str] = None
        try:
            location = await self.engine.transfer(task, on_progress, abort)
        except TransferAborted as e:
            abort.abort(str(e) or DEFAULT_ABORT_REASON)
        except TransferError as e:
            error = str(e) or "Upload failed"
        except asyncio.CancelledError:
            abort.abort(SHUTDOWN_REASON)
            raise
        except Exception as e:
            log.error(
                f"[red]✗ Unexpected error while uploading '{escape(task.name)}': {e}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            error = f"Unexpected error: {e}"
        finally:
            self._settle(task, running, location, error)

    def _settle(
        self,
        task: UploadTask,
        running: _RunningTransfer,
        location: Optional[str],
        error: Optional[str],
    ) -> None:
        """Releases the slot, records the outcome and refills free slots."""
        self._active_count -= 1
        if self._running.get(task.id) is running:
            del self._running[task.id]

        # A recorded cancellation wins over a late success or failure.
        if running.abort.aborted:
            reason = running.abort.reason or DEFAULT_ABORT_REASON
            if self._store.cancel(task.id, reason, attempt=running.attempt):
                log.info(f"[yellow]Cancelled '{escape(task.name)}'[/yellow]")
        elif error is not None:
            if self._store.fail(task.id, running.attempt, error):
                log.warning(f"[yellow]✗ Failed:[/] {escape(task.name)} ({error})")
        elif self._store.complete(task.id, running.attempt, location or ""):
            log.info(f"[green]✓ Uploaded:[/] {escape(task.name)}")

        self._drain()
        self._check_idle()

    def _check_idle(self) -> None:
        if self._active_count == 0 and not self._queue:
            self._idle.set()
