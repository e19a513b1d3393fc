"""Cross-process advisory file lock for the link store.

Uses ``fcntl.flock`` on POSIX and ``msvcrt.locking`` on Windows. The lock
guards one full load-mutate-save cycle so two processes writing the same
store cannot lose each other's update.
"""

import contextlib
import logging
import sys
import time
from collections.abc import Iterator
from pathlib import Path
from typing import IO

from tracelink.errors import IoError

logger = logging.getLogger("tracelink")

_POLL_INTERVAL = 0.05


class LockBusyError(IoError):
    """The lock is held by another process."""


def _try_lock(handle: IO[str]) -> None:
    if sys.platform == "win32":
        import msvcrt

        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError as e:
            # EACCES / EDEADLK mean another process holds the byte range
            if e.errno in (13, 36):
                raise LockBusyError(f"Lock is held by another process: {handle.name}") from e
            raise IoError(f"msvcrt.locking failed: {e}") from e
    else:
        import fcntl

        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            raise LockBusyError(f"Lock is held by another process: {handle.name}") from e
        except OSError as e:
            raise IoError(f"fcntl.flock failed: {e}") from e


def _unlock(handle: IO[str]) -> None:
    if sys.platform == "win32":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextlib.contextmanager
def exclusive_lock(lock_path: Path, timeout: float = 10.0) -> Iterator[None]:
    """Hold an exclusive lock on *lock_path* for the duration of the block.

    Args:
        lock_path: Path of the lock file. Created if missing; its content
            is irrelevant.
        timeout: Seconds to keep retrying before giving up. ``0`` tries
            exactly once.

    Raises:
        LockBusyError: If the lock could not be acquired within *timeout*.
        IoError: If the lock file cannot be opened or locked.
    """
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(lock_path, "a+", encoding="utf-8")
    except OSError as e:
        raise IoError(f"Cannot open lock file {lock_path}: {e}") from e

    try:
        deadline = time.monotonic() + max(timeout, 0.0)
        while True:
            try:
                _try_lock(handle)
                break
            except LockBusyError:
                if time.monotonic() >= deadline:
                    raise LockBusyError(
                        f"Timed out after {timeout:g}s waiting for lock {lock_path}"
                    ) from None
                time.sleep(_POLL_INTERVAL)

        logger.debug("Acquired lock on %s", lock_path)
        try:
            yield
        finally:
            try:
                _unlock(handle)
            except OSError as e:
                logger.warning("Failed to release lock %s: %s", lock_path, e)
            else:
                logger.debug("Released lock on %s", lock_path)
    finally:
        handle.close()
