"""
Per-key locking for single-writer-per-principal mutations.

Keys: lock:principal:{id}, lock:email:{digest}, lock:session:{principal_id}.
A process-local lock per key keeps threads off the poll loop and is dropped
once no thread holds or waits on it. A lock file under <data_dir>/locks holds
the owner's pid and serializes workers sharing the same data directory; a
file left behind by a dead process is reclaimed.
"""

from __future__ import annotations

import os
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, List

from ..utils.exceptions import LockTimeoutError
from ..utils.logger import get_logger

logger = get_logger(__name__)

LOCK_TIMEOUT_SECONDS = 30
LOCK_POLL_INTERVAL = 0.02


class KeyedLocks:
    """Named mutual-exclusion scopes rooted at one directory."""

    def __init__(
        self,
        locks_dir: Path,
        timeout_seconds: float = LOCK_TIMEOUT_SECONDS,
        poll_interval: float = LOCK_POLL_INTERVAL,
    ):
        self.locks_dir = Path(locks_dir)
        self.timeout_seconds = timeout_seconds
        self.poll_interval = poll_interval
        self._guard = threading.Lock()
        # key -> [lock, holders and waiters]
        self._local: Dict[str, List] = {}

    def _lock_path(self, key: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in key)
        self.locks_dir.mkdir(parents=True, exist_ok=True)
        return self.locks_dir / f"{safe}.lock"

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            entry = self._local.get(key)
            if entry is None:
                entry = self._local[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._local[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._local[key]

    def _reclaim_stale(self, path: Path) -> bool:
        """Remove a lock file whose owning process no longer exists. True if removed."""
        try:
            pid = int(path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return False
        if pid == os.getpid():
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            pass
        except (PermissionError, OverflowError):
            return False
        else:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        logger.warning("Reclaimed stale lock", lock_file=path.name, owner_pid=pid)
        return True

    @contextmanager
    def acquire(self, key: str, timeout_seconds: float | None = None) -> Generator[None, None, None]:
        """
        Hold the named lock for the duration of the block.
        Raises LockTimeoutError if it cannot be taken in time.
        """
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        deadline = time.monotonic() + timeout

        local = self._checkout(key)
        if not local.acquire(timeout=timeout):
            self._checkin(key)
            raise LockTimeoutError(key, timeout)
        try:
            path = self._lock_path(key)
            while True:
                try:
                    fd = os.open(str(path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
                except FileExistsError:
                    if self._reclaim_stale(path):
                        continue
                    if time.monotonic() >= deadline:
                        raise LockTimeoutError(key, timeout)
                    time.sleep(self.poll_interval)
                    continue
                try:
                    os.write(fd, str(os.getpid()).encode())
                finally:
                    os.close(fd)
                break
            try:
                yield
            finally:
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
        finally:
            local.release()
            self._checkin(key)


def lock_key_principal(principal_id: str) -> str:
    return f"lock:principal:{principal_id}"


def lock_key_email(email_digest: str) -> str:
    return f"lock:email:{email_digest}"


def lock_key_session(principal_id: str) -> str:
    return f"lock:session:{principal_id}"
