"""
The transfer engine contract and the abort signal shared with the scheduler.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Protocol, TypeVar, runtime_checkable

from swiftdrop.exceptions import TransferAborted
from swiftdrop.models.policy import UploadPolicy
from swiftdrop.models.task import UploadTask

T = TypeVar("T")

ProgressCallback = Callable[[int], None]
"""Receives the cumulative number of bytes sent so far."""

DEFAULT_ABORT_REASON = "Upload cancelled by user"


class AbortSignal:
    """One-shot flag telling a running transfer to stop."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str = DEFAULT_ABORT_REASON) -> None:
        """Requests the abort. The first reason given is kept."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_aborted(self) -> None:
        if self._event.is_set():
            raise TransferAborted(self.reason or DEFAULT_ABORT_REASON)


@runtime_checkable
class TransferEngine(Protocol):
    """
    Moves the bytes of one task.

    Implementations report cumulative progress through `on_progress`, return
    the result location on success, raise TransferError on failure and raise
    TransferAborted once they notice `abort`.
    """

    async def transfer(
        self, task: UploadTask, on_progress: ProgressCallback, abort: AbortSignal
    ) -> str: ...


@runtime_checkable
class PolicyAwareEngine(Protocol):
    """An engine that wants to hear about policy changes (e.g. auto_compress)."""

    def apply_policy(self, policy: UploadPolicy) -> None: ...


async def run_abortable(work: Awaitable[T], abort: AbortSignal) -> T:
    """
    Awaits `work`, cancelling it as soon as `abort` fires.

    Raises:
        TransferAborted: If the abort fired before `work` finished.
    """
    job = asyncio.ensure_future(work)
    if abort.aborted:
        job.cancel()
        await asyncio.gather(job, return_exceptions=True)
        abort.raise_if_aborted()

    waiter = asyncio.ensure_future(abort.wait())
    try:
        done, _ = await asyncio.wait(
            {job, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        job.cancel()
        waiter.cancel()
        raise

    if job in done:
        waiter.cancel()
        return job.result()

    job.cancel()
    await asyncio.gather(job, return_exceptions=True)
    raise TransferAborted(abort.reason or DEFAULT_ABORT_REASON)
