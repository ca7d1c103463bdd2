#!/usr/bin/env python3
# hubvault/security/file_lock.py
from __future__ import annotations
"""
Advisory cross-process lock for the vault directory.

Uses fcntl.flock on POSIX and msvcrt.locking on Windows. Acquisition is
non-blocking per attempt and polled until `timeout` expires, so a second
process mutating the same vault waits for the first instead of racing it.

The lock file itself is left in place on release: unlinking a flock'ed file
lets a third process lock a fresh inode while a second still holds the old one.
"""

import logging
import os
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger("hubvault.lock")

_POLL_INTERVAL = 0.05


class LockTimeout(OSError):
    """Raised when the lock could not be acquired before the timeout."""


class FileLock:
    """
    Exclusive advisory lock bound to a lock file path.

    Example:
        >>> with FileLock(vault_dir / ".vault.lock", timeout=5):
        ...     store.reload()
        ...     store.set("github", record)

    Re-entrant within one instance: nested `with` blocks only count depth.
    """

    def __init__(self, lock_path: str | os.PathLike[str], *, timeout: float = 5.0) -> None:
        self.lock_path = Path(lock_path)
        self.timeout = max(0.0, float(timeout))
        self._lock_fd: Optional[int] = None
        self._depth = 0

    @property
    def locked(self) -> bool:
        return self._lock_fd is not None

    def _try_lock(self, fd: int) -> bool:
        if os.name == "nt":
            import msvcrt

            try:
                msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)
            except OSError:
                return False
            return True

        import fcntl

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except (BlockingIOError, PermissionError):
            return False
        return True

    def acquire(self) -> None:
        """
        Acquire the lock, polling until `timeout`.

        Raises:
            LockTimeout: If another holder keeps the lock past the timeout.
            OSError: If the lock file cannot be opened.
        """
        if self._lock_fd is not None:
            self._depth += 1
            return

        fd = os.open(self.lock_path, os.O_CREAT | os.O_RDWR, 0o600)
        deadline = time.monotonic() + self.timeout
        while True:
            if self._try_lock(fd):
                self._lock_fd = fd
                self._depth = 1
                return
            if time.monotonic() >= deadline:
                os.close(fd)
                raise LockTimeout(
                    f"Timed out after {self.timeout:.1f}s waiting for {self.lock_path}")
            time.sleep(_POLL_INTERVAL)

    def release(self) -> None:
        """Release the lock. Safe to call when not held."""
        if self._lock_fd is None:
            return
        self._depth -= 1
        if self._depth > 0:
            return

        fd, self._lock_fd = self._lock_fd, None
        try:
            if os.name == "nt":
                import msvcrt

                try:
                    msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
                except OSError:
                    pass  # already released
            else:
                import fcntl

                fcntl.flock(fd, fcntl.LOCK_UN)
        except OSError as exc:
            logger.warning("Error releasing vault lock %s: %s", self.lock_path, exc)
        finally:
            os.close(fd)

    def __enter__(self) -> "FileLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
