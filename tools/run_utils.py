# tools/run_utils.py

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from shipkit.io import read_json, write_json_atomic

logger = logging.getLogger(__name__)

RUN_COUNTER_FILENAME = ".run_number"


@contextmanager
def counter_lock(state_file: Path) -> Iterator[None]:
    """Exclusive lock on ``<state_file>.lock`` across processes and threads.

    Blocks until the lock is free. The lock file is left in place; removing it
    would let a waiter lock an unlinked inode.
    """
    lock_path = Path(state_file).with_name(Path(state_file).name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)

    with open(lock_path, "a+") as fd:
        if sys.platform == "win32":
            import msvcrt

            fd.seek(0)
            msvcrt.locking(fd.fileno(), msvcrt.LK_LOCK, 1)
        else:
            import fcntl

            fcntl.flock(fd.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            if sys.platform == "win32":
                import msvcrt

                fd.seek(0)
                msvcrt.locking(fd.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                import fcntl

                fcntl.flock(fd.fileno(), fcntl.LOCK_UN)


def read_last_run_number(state_file: Path) -> int:
    """Return the last issued run number (0 when the counter does not exist)."""
    p = Path(state_file)
    if not p.exists():
        return 0
    try:
        data = read_json(p)
        return max(0, int((data or {}).get("last", 0)))
    except (ValueError, TypeError, AttributeError, OSError) as e:
        raise ValueError(f"Corrupt run counter at {p}: {e}") from e


def next_run_number(state_file: Path) -> int:
    """Issue the next run number and persist it atomically.

    Concurrent callers never receive the same number.
    """
    with counter_lock(state_file):
        nxt = read_last_run_number(state_file) + 1
        write_json_atomic(Path(state_file), {"last": nxt})
    logger.debug("issued run number %d (%s)", nxt, state_file)
    return nxt


def record_run_number(state_file: Path, run_number: int) -> None:
    """Move the counter forward to ``run_number`` if it is behind."""
    with counter_lock(state_file):
        if read_last_run_number(state_file) < int(run_number):
            write_json_atomic(Path(state_file), {"last": int(run_number)})
