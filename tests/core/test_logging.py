from __future__ import annotations

import logging

import pytest

from settlement.core.logging import _ContainerFormatter, _JsonFormatter, setup_logging


def _record(level: int, msg: str = "hello", lineno: int = 1, pathname: str = "svc.py"):
    return logging.LogRecord(
        name="settlement.test",
        level=level,
        pathname=pathname,
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


@pytest.mark.parametrize("name", ["uvicorn", "uvicorn.access", "httpx", "httpcore"])
def test_noisy_libraries_stay_at_warning(name: str) -> None:
    setup_logging("debug")
    assert logging.getLogger(name).level == logging.WARNING

    setup_logging("error")
    assert logging.getLogger(name).level == logging.ERROR


def test_setup_logging_installs_one_handler() -> None:
    setup_logging("info")
    setup_logging("info", json_format=True)
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, _JsonFormatter)


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO))
    assert "hello" in output
    assert "[svc.py:" not in output


@pytest.mark.parametrize("level", [logging.WARNING, logging.ERROR])
def test_formatter_includes_location_for_warning_and_above(level: int) -> None:
    output = _ContainerFormatter().format(_record(level, "declined", lineno=42))
    assert "declined" in output
    assert "[svc.py:42]" in output
