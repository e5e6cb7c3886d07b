from __future__ import annotations

import logging
import os
import time
from pathlib import Path


log = logging.getLogger(__name__)


class PublishLock:
    """Single-writer lock file guarding the VERSION counter.

    The lock is an exclusively created file holding the owner's pid. A lock
    older than ``stale_seconds`` is assumed to belong to a crashed run and is
    removed.
    """

    def __init__(self, path: Path, timeout_seconds: float = 0.0, stale_seconds: float = 600.0):
        self.path = path
        self.timeout_seconds = timeout_seconds
        self.stale_seconds = stale_seconds
        self._held = False

    def _try_create(self) -> bool:
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(str(os.getpid()))
        return True

    def _remove_if_stale(self) -> bool:
        try:
            seen = self.path.stat()
        except FileNotFoundError:
            return True
        age = time.time() - seen.st_mtime
        if self.stale_seconds <= 0 or age < self.stale_seconds:
            return False
        # Another waiter may have replaced the stale lock with its own since
        # the first stat; only unlink the file that was judged stale.
        try:
            current = self.path.stat()
        except FileNotFoundError:
            return True
        if (current.st_ino, current.st_mtime_ns) != (seen.st_ino, seen.st_mtime_ns):
            return True
        log.warning("Removing stale publish lock %s (age %.0fs)", self.path, age)
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        return True

    def _owner(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8").strip() or "?"
        except OSError:
            return "?"

    def acquire(self) -> None:
        start = time.time()
        while True:
            if self._try_create():
                self._held = True
                log.debug("Acquired publish lock %s", self.path)
                return
            if self._remove_if_stale():
                continue
            if time.time() - start >= self.timeout_seconds:
                raise RuntimeError(
                    f"Another bump is in progress (lock {self.path} held by pid={self._owner()}). "
                    "Remove the lock file if that process is gone."
                )
            time.sleep(0.25)

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink()
        except FileNotFoundError:
            log.warning("Publish lock %s vanished before release.", self.path)

    def __enter__(self) -> "PublishLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
