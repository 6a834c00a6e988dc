"""``-v`` / ``ARM_LOG`` handling in the CLI callback."""

from __future__ import annotations

import logging
import sys
from unittest.mock import MagicMock, patch

import pytest

from azure_provisioner.cli import _LOG_FORMAT, _configure_logging

PKG_LOGGER = logging.getLogger("azure_provisioner")


@pytest.fixture(autouse=True)
def basic_config():
    """Stub out ``logging.basicConfig`` and restore the package logger level afterwards."""
    with patch("logging.basicConfig") as mock:
        yield mock
    PKG_LOGGER.setLevel(logging.NOTSET)


@pytest.mark.parametrize(
    ("verbose", "env", "expected"),
    [
        (1, None, logging.INFO),
        (2, None, logging.DEBUG),
        (3, None, logging.DEBUG),
        (0, "debug", logging.DEBUG),
        (2, "WARNING", logging.WARNING),
        (0, " error ", logging.ERROR),
    ],
)
def test_package_logger_level(
    basic_config: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    verbose: int,
    env: str | None,
    expected: int,
) -> None:
    if env is not None:
        monkeypatch.setenv("ARM_LOG", env)

    _configure_logging(verbose)

    basic_config.assert_called_once_with(
        level=logging.WARNING, format=_LOG_FORMAT, stream=sys.stderr, force=True
    )
    assert PKG_LOGGER.level == expected


def test_no_flag_leaves_logging_alone(basic_config: MagicMock) -> None:
    _configure_logging(0)

    basic_config.assert_not_called()


def test_invalid_arm_log_falls_back_to_info(
    basic_config: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("ARM_LOG", "chatty")

    _configure_logging(0)

    basic_config.assert_called_once()
    assert PKG_LOGGER.level == logging.INFO
    assert "invalid ARM_LOG level 'CHATTY'" in capsys.readouterr().err
