# tests/test_simulated_engine.py

from __future__ import annotations

import pytest

from swiftdrop.exceptions import TransferAborted, TransferError
from swiftdrop.models.task import UploadTask
from swiftdrop.transfer.base import AbortSignal
from swiftdrop.transfer.simulated import SimulatedTransferEngine


def _task(size: int = 100_000) -> UploadTask:
    return UploadTask(id="t1", name="holiday photo.png", size=size, mime_type="image/png")


def _engine(**kwargs) -> SimulatedTransferEngine:
    return SimulatedTransferEngine(min_delay=0, max_delay=0, seed=7, **kwargs)


@pytest.mark.asyncio
async def test_reports_increasing_progress_and_returns_location() -> None:
    reported: list[int] = []

    location = await _engine(failure_rate=0).transfer(_task(), reported.append, AbortSignal())

    assert reported == sorted(reported)
    assert reported[0] == 8192
    assert reported[-1] == 100_000
    assert location == "https://example.com/files/t1/holiday%20photo.png"


@pytest.mark.asyncio
async def test_certain_failure_raises_transfer_error() -> None:
    reported: list[int] = []

    with pytest.raises(TransferError, match="network error"):
        await _engine(failure_rate=1.0).transfer(_task(), reported.append, AbortSignal())

    assert len(reported) == 1


@pytest.mark.asyncio
async def test_abort_stops_the_chunk_loop() -> None:
    abort = AbortSignal()
    reported: list[int] = []

    def on_progress(sent: int) -> None:
        reported.append(sent)
        abort.abort("stop now")

    with pytest.raises(TransferAborted, match="stop now"):
        await _engine(failure_rate=0).transfer(_task(), on_progress, abort)

    assert reported == [8192]


@pytest.mark.asyncio
async def test_zero_byte_file_completes_without_progress() -> None:
    reported: list[int] = []

    await _engine(failure_rate=1.0).transfer(_task(size=0), reported.append, AbortSignal())

    assert reported == []


def test_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        SimulatedTransferEngine(min_delay=1, max_delay=0.5)
    with pytest.raises(ValueError):
        SimulatedTransferEngine(failure_rate=2)
