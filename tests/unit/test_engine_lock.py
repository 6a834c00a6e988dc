from __future__ import annotations

import fcntl
from pathlib import Path
from unittest.mock import patch

import pytest

from azure_provisioner.engine.errors import StateLockError
from azure_provisioner.engine.lock import StateLock


def test_lock_file_sits_next_to_state(tmp_path: Path) -> None:
    lock = StateLock(tmp_path / "nested" / "state.json")

    with lock:
        assert lock.path == tmp_path / "nested" / "state.json.lock"
        assert lock.path.exists()


def test_lock_is_released_on_exit(tmp_path: Path) -> None:
    state_path = tmp_path / "state.json"

    with StateLock(state_path):
        pass

    with state_path.with_name("state.json.lock").open("a+") as fh:
        fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


def test_flock_failure_raises_state_lock_error(tmp_path: Path) -> None:
    with (
        patch("azure_provisioner.engine.lock.fcntl.flock", side_effect=OSError("busy")),
        pytest.raises(StateLockError, match="Cannot lock"),
        StateLock(tmp_path / "state.json"),
    ):
        pass
