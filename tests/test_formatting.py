# tests/test_formatting.py

from __future__ import annotations

import pytest

from swiftdrop.utils.formatting import (
    file_category,
    format_duration,
    format_eta,
    format_size,
    format_speed,
)


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (10_485_760, "10.0 MB")],
)
def test_format_size(size: int, expected: str) -> None:
    assert format_size(size) == expected


def test_format_speed_and_eta() -> None:
    assert format_speed(250_000) == "244.1 KB/s"
    assert format_speed(None) == "0 B/s"
    assert format_eta(None) == "unknown"
    assert format_eta(2.0) == "2s"
    assert format_duration(3725) == "1h 2m 5s"


@pytest.mark.parametrize(
    ("mime_type", "category"),
    [
        ("image/png", "Image"),
        ("video/mp4", "Video"),
        ("audio/mpeg", "Audio"),
        ("application/pdf", "Document"),
        ("application/vnd.openxmlformats-officedocument.wordprocessingml.document", "Document"),
        ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", "Spreadsheet"),
        ("application/zip", "Archive"),
        ("application/octet-stream", "File"),
    ],
)
def test_file_category(mime_type: str, category: str) -> None:
    assert file_category(mime_type) == category
