"""
Derives percentage, speed and ETA for a running transfer.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress figures for one tick of a transfer."""

    uploaded_bytes: int
    progress: int
    speed: float
    eta_seconds: Optional[float]


def estimate(
    uploaded_bytes: int, total_bytes: int, elapsed_seconds: float
) -> ProgressSnapshot:
    """
    Computes progress, speed and ETA from cumulative bytes and elapsed time.

    Args:
        uploaded_bytes: Bytes transferred so far.
        total_bytes: Size of the whole payload. A zero-byte payload counts as
            fully transferred.
        elapsed_seconds: Wall-clock time since the transfer started.

    Returns:
        A ProgressSnapshot. `eta_seconds` is None while the speed is unknown.
    """
    uploaded_bytes = max(0, uploaded_bytes)
    ratio = min(uploaded_bytes / total_bytes, 1.0) if total_bytes > 0 else 1.0
    progress = max(0, min(100, round(ratio * 100)))

    speed = uploaded_bytes / elapsed_seconds if elapsed_seconds > 0 else 0.0
    eta = max(0, total_bytes - uploaded_bytes) / speed if speed > 0 else None
    return ProgressSnapshot(
        uploaded_bytes=uploaded_bytes,
        progress=progress,
        speed=speed,
        eta_seconds=eta,
    )


class ProgressReporter:
    """
    Turns the byte counts reported by one transfer attempt into snapshots.

    Progress never goes backwards within an attempt, even if the engine
    restarts its byte count (for example after an internal retry).
    """

    def __init__(
        self, total_bytes: int, clock: Callable[[], float] = time.monotonic
    ):
        self.total_bytes = total_bytes
        self._clock = clock
        self._started = clock()
        self._last_progress = 0

    @property
    def elapsed(self) -> float:
        return max(0.0, self._clock() - self._started)

    def update(self, uploaded_bytes: int) -> ProgressSnapshot:
        snapshot = estimate(uploaded_bytes, self.total_bytes, self.elapsed)
        if snapshot.progress < self._last_progress:
            snapshot = ProgressSnapshot(
                uploaded_bytes=snapshot.uploaded_bytes,
                progress=self._last_progress,
                speed=snapshot.speed,
                eta_seconds=snapshot.eta_seconds,
            )
        self._last_progress = snapshot.progress
        return snapshot
