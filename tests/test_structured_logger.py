# tests/test_structured_logger.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from swiftdrop.core.scheduler import UploadScheduler
from swiftdrop.models.policy import UploadPolicy
from swiftdrop.models.task import Rejection
from swiftdrop.utils.structured_logger import create_structured_logger

from .fakes import ScriptedTransferEngine, png, settle


def _entries(log_dir: Path) -> list[dict]:
    (log_file,) = log_dir.glob("swiftdrop_*.jsonl")
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]


@pytest.mark.asyncio
async def test_lifecycle_events_are_written_as_json_lines(
    tmp_path: Path, engine: ScriptedTransferEngine, policy: UploadPolicy
) -> None:
    base, events = create_structured_logger(tmp_path, enable_json=True)
    scheduler = UploadScheduler(engine, policy)
    events.attach(scheduler)

    a, b = scheduler.submit([png("A"), png("B")]).accepted
    events.file_rejected(Rejection("big.png", ("exceeds size limit of 10000000",)))
    await settle()
    engine.report(a, 500_000)
    engine.succeed(a)
    engine.fail(b, "network down")
    await settle()
    scheduler.retry(b)
    scheduler.cancel(b)
    scheduler.remove(a)
    base.close()

    entries = _entries(tmp_path)
    names = [e["event"] for e in entries]
    assert names == [
        "task_queued",
        "task_queued",
        "task_started",
        "task_started",
        "file_rejected",
        "task_completed",
        "task_failed",
        "task_retried",
        "task_started",
        "task_cancelled",
        "task_removed",
    ]
    failed = entries[names.index("task_failed")]
    assert failed["level"] == "ERROR"
    assert failed["error"] == "network down"
    assert failed["task_id"] == b
    assert all(e["session_id"] == entries[0]["session_id"] for e in entries)
    assert entries[names.index("file_rejected")]["reasons"] == ["exceeds size limit of 10000000"]


def test_json_logging_is_off_without_a_directory() -> None:
    base, events = create_structured_logger(None, enable_json=True)

    events.session_started(total_files=1, max_concurrent=2, engine="simulated")

    assert base.enable_json is False
    assert base.json_log_path is None
