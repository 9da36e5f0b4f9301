# tests/test_policy.py

from __future__ import annotations

import pytest
from pydantic import ValidationError

from swiftdrop.exceptions import ConfigurationError
from swiftdrop.models.policy import DEFAULT_MAX_FILE_SIZE, TransferSettings, UploadPolicy


def test_defaults() -> None:
    policy = UploadPolicy()

    assert policy.max_file_size == DEFAULT_MAX_FILE_SIZE == 10_485_760
    assert "image/png" in policy.allowed_types
    assert policy.max_concurrent_uploads == 3
    assert policy.auto_compress is False


def test_allowed_types_accept_strings_and_are_normalized() -> None:
    policy = UploadPolicy(allowed_types="Image/PNG, text/plain  application/pdf")

    assert policy.allowed_types == frozenset({"image/png", "text/plain", "application/pdf"})


def test_concurrency_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        UploadPolicy(max_concurrent_uploads=0)


def test_merged_returns_new_policy_and_wraps_errors() -> None:
    policy = UploadPolicy()

    updated = policy.merged({"max_concurrent_uploads": 5, "auto_compress": True})

    assert updated.max_concurrent_uploads == 5
    assert updated.auto_compress is True
    assert policy.max_concurrent_uploads == 3
    with pytest.raises(ConfigurationError):
        policy.merged({"max_file_size": -1})


def test_http_engine_requires_url() -> None:
    with pytest.raises(ValidationError):
        TransferSettings(engine="http")
    with pytest.raises(ValidationError):
        TransferSettings(engine="http", upload_url="ftp://example.com")

    settings = TransferSettings(engine="http", upload_url="https://example.com/upload")
    assert settings.max_attempts == 3
