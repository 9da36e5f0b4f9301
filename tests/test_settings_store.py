# tests/test_settings_store.py

from __future__ import annotations

import configparser
from pathlib import Path

import pytest

from swiftdrop.exceptions import ConfigurationError
from swiftdrop.models.policy import TransferSettings, UploadPolicy
from swiftdrop.storage.settings_store import SettingsStore, default_settings_path


def test_missing_file_yields_defaults_without_writing(settings_path: Path) -> None:
    policy, transfer = SettingsStore(settings_path).load()

    assert policy == UploadPolicy()
    assert transfer == TransferSettings()
    assert not settings_path.exists()


def test_save_then_load_round_trip(settings_path: Path) -> None:
    store = SettingsStore(settings_path)
    policy = UploadPolicy(
        max_file_size=2048,
        allowed_types=["image/png", "text/plain"],
        max_concurrent_uploads=4,
        auto_compress=True,
    )
    transfer = TransferSettings(engine="http", upload_url="https://up.example/api")

    assert store.save(policy, transfer) == policy
    loaded_policy, loaded_transfer = store.load()

    assert loaded_policy == policy
    assert loaded_transfer.engine == "http"
    assert loaded_transfer.upload_url == "https://up.example/api"


def test_overrides_take_precedence_and_none_is_ignored(settings_path: Path) -> None:
    store = SettingsStore(settings_path)
    store.save(UploadPolicy(max_concurrent_uploads=4), TransferSettings())

    policy, transfer = store.load(
        {"max_concurrent_uploads": 1, "max_file_size": None, "auto_retries": 2}
    )

    assert policy.max_concurrent_uploads == 1
    assert policy.max_file_size == UploadPolicy().max_file_size
    assert transfer.auto_retries == 2


def test_unknown_override_is_rejected(settings_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Unknown setting"):
        SettingsStore(settings_path).load({"colour": "blue"})


def test_missing_keys_are_migrated(settings_path: Path) -> None:
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text("[policy]\nmax_file_size = 1000\n", encoding="utf-8")

    policy, _ = SettingsStore(settings_path).load()

    assert policy.max_file_size == 1000
    parser = configparser.ConfigParser(interpolation=None)
    parser.read(settings_path, encoding="utf-8")
    assert parser["policy"]["max_concurrent_uploads"] == "3"
    assert parser["transfer"]["engine"] == "simulated"


def test_invalid_values_raise_configuration_error(settings_path: Path) -> None:
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text("[policy]\nmax_concurrent_uploads = zero\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="validation failed"):
        SettingsStore(settings_path).load()


def test_unparsable_file_raises_configuration_error(settings_path: Path) -> None:
    settings_path.parent.mkdir(parents=True)
    settings_path.write_text("max_file_size = 1\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="parsing"):
        SettingsStore(settings_path).load()


def test_default_path_honours_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("sys.platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert default_settings_path() == tmp_path / "swiftdrop" / "settings.ini"
