"""Advisory cross-process lock for config read-modify-write cycles.

The lock is a ``<target>.lock`` directory next to the protected file.
``mkdir`` is atomic on every platform we care about, so whichever
process creates the directory owns the lock. A lock directory older
than ``stale`` seconds belongs to a process that died mid-write and is
reclaimed.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from types import TracebackType

import structlog

from vecguard.errors import LockTimeout

logger = structlog.get_logger()


class DirectoryLock:
    """Mutual exclusion around a file, shared between processes."""

    def __init__(
        self,
        target: str | Path,
        *,
        stale: float = 10.0,
        retries: int = 5,
        min_timeout: float = 0.1,
    ) -> None:
        """Initialize the lock.

        Args:
            target: The file being protected. The lock lives beside it.
            stale: Seconds after which an existing lock is considered abandoned.
            retries: How many times to retry after the first failed attempt.
            min_timeout: Initial back-off in seconds, doubled on each retry.
        """
        self._target = Path(target)
        self._lock_dir = self._target.with_name(self._target.name + ".lock")
        self._stale = stale
        self._retries = retries
        self._min_timeout = min_timeout
        self._held = False

    @property
    def path(self) -> Path:
        return self._lock_dir

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Acquire the lock, reclaiming it if stale.

        Raises:
            LockTimeout: If the lock is still held after all retries.
        """
        self._lock_dir.parent.mkdir(parents=True, exist_ok=True)
        delay = self._min_timeout
        attempt = 0
        while True:
            try:
                os.mkdir(self._lock_dir)
            except FileExistsError:
                if self._reclaim_if_stale():
                    continue
                if attempt >= self._retries:
                    break
                time.sleep(delay)
                delay *= 2
                attempt += 1
            else:
                self._held = True
                logger.debug("config_lock_acquired", lock=str(self._lock_dir))
                return

        raise LockTimeout(str(self._target), f"lock {self._lock_dir} is held by another process")

    def release(self) -> None:
        """Release the lock if this instance holds it."""
        if not self._held:
            return
        self._held = False
        try:
            os.rmdir(self._lock_dir)
        except FileNotFoundError:
            # Reclaimed by another process after we went stale.
            logger.warning("config_lock_lost", lock=str(self._lock_dir))
        else:
            logger.debug("config_lock_released", lock=str(self._lock_dir))

    def _reclaim_if_stale(self) -> bool:
        try:
            age = time.time() - self._lock_dir.stat().st_mtime
        except FileNotFoundError:
            # Released between our mkdir and stat; just retry.
            return True
        if age <= self._stale:
            return False
        logger.warning("config_lock_stale", lock=str(self._lock_dir), age=round(age, 1))
        try:
            os.rmdir(self._lock_dir)
        except FileNotFoundError:
            pass
        return True

    def __enter__(self) -> DirectoryLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
