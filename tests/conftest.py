# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from swiftdrop.models.policy import UploadPolicy

from .fakes import FakeClock, ScriptedTransferEngine


@pytest.fixture()
def policy() -> UploadPolicy:
    """Two upload slots, PNG only, 10 MB limit."""
    return UploadPolicy(
        max_file_size=10_000_000,
        allowed_types=["image/png"],
        max_concurrent_uploads=2,
    )


@pytest.fixture()
def engine() -> ScriptedTransferEngine:
    return ScriptedTransferEngine()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "swiftdrop" / "settings.ini"
