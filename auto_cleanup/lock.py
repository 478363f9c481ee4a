# auto-cleanup — single-instance execution lock
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.
#
# flock(2) on a well-known file. The lock belongs to the open file
# description, so the kernel drops it when the process dies, however it dies.

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)


class LockHeldError(RuntimeError):
    def __init__(self, path: Path):
        super().__init__(f"Another instance is already running. Lock file: {path}")
        self.path = path


class ExecutionLock:
    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._fh = None

    @property
    def held(self) -> bool:
        return self._fh is not None

    def acquire(self):
        """Take the lock without blocking. Raises LockHeldError on contention."""
        if self._fh is not None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fh = open(self.path, "a")
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except (BlockingIOError, PermissionError):
            fh.close()
            raise LockHeldError(self.path) from None
        except OSError:
            fh.close()
            raise
        self._fh = fh
        log.debug("Lock acquired: %s", self.path)

    def release(self):
        """Drop the lock. Calling it when not held does nothing."""
        fh, self._fh = self._fh, None
        if fh is None:
            return
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()
        log.debug("Lock released")

    def __enter__(self) -> "ExecutionLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
