"""Advisory lock around the local state file."""

from __future__ import annotations

import fcntl
from pathlib import Path
from typing import IO, TYPE_CHECKING

from azure_provisioner.engine.errors import StateLockError

if TYPE_CHECKING:
    from types import TracebackType


class StateLock:
    """Exclusive ``flock`` on ``<state>.lock``, held for the duration of a ``with`` block.

    Blocks until a concurrent plan/apply on the same state file releases it.
    """

    def __init__(self, state_path: Path) -> None:
        self._lock_path = Path(f"{state_path}.lock")
        self._handle: IO[str] | None = None

    @property
    def path(self) -> Path:
        return self._lock_path

    def __enter__(self) -> StateLock:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = self._lock_path.open("a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            handle.close()
            raise StateLockError(f"Cannot lock {self._lock_path}: {e}") from e
        self._handle = handle
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()
