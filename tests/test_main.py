# tests/test_main.py

from __future__ import annotations

import pytest

from swiftdrop import __main__ as entry
from swiftdrop.exceptions import (
    ConfigurationError,
    InvalidStateError,
    TaskNotFoundError,
    TransferError,
)


def _raising(exc: BaseException):
    def run() -> None:
        raise exc

    return run


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (TaskNotFoundError("t-9"), entry.EXIT_TASK_MISUSE),
        (InvalidStateError("t-9", "completed", "retry"), entry.EXIT_TASK_MISUSE),
        (ConfigurationError("bad value"), entry.EXIT_FAILURE),
        (TransferError("endpoint down"), entry.EXIT_FAILURE),
        (RuntimeError("boom"), entry.EXIT_FAILURE),
    ],
)
def test_errors_map_to_exit_codes(monkeypatch, error: Exception, code: int) -> None:
    monkeypatch.setattr(entry, "app", _raising(error))

    with pytest.raises(SystemExit) as exc_info:
        entry.main()

    assert exc_info.value.code == code


def test_task_errors_show_the_task_and_a_suggestion(monkeypatch, capsys) -> None:
    monkeypatch.setattr(entry, "app", _raising(InvalidStateError("t-9", "completed", "retry")))

    with pytest.raises(SystemExit):
        entry.main()

    err = capsys.readouterr().err
    assert "InvalidStateError" in err
    assert "task: t-9" in err
    assert "status: completed" in err
    assert "Only failed or cancelled uploads can be retried." in err


def test_configuration_errors_point_at_the_settings_file(
    monkeypatch, capsys, tmp_path
) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    monkeypatch.setattr(entry, "app", _raising(ConfigurationError("bad value")))

    with pytest.raises(SystemExit):
        entry.main()

    err = capsys.readouterr().err
    assert "ConfigurationError" in err
    assert "default settings file" in err
    assert "swiftdrop config" in err


def test_interrupt_exits_with_130(monkeypatch, capsys) -> None:
    monkeypatch.setattr(entry, "app", _raising(KeyboardInterrupt()))

    with pytest.raises(SystemExit) as exc_info:
        entry.main()

    assert exc_info.value.code == entry.EXIT_INTERRUPTED
    assert "Upload session interrupted" in capsys.readouterr().err


def test_normal_exit_passes_through(monkeypatch) -> None:
    monkeypatch.setattr(entry, "app", _raising(SystemExit(0)))

    with pytest.raises(SystemExit) as exc_info:
        entry.main()

    assert exc_info.value.code == 0
