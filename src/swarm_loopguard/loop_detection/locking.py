"""Per-agent advisory locking around the load/save cycle."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from swarm_loopguard.core.common.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


@contextmanager
def agent_lock(lock_path: Path, agent_id: str, timeout: float) -> Iterator[None]:
    """Hold an exclusive lock on ``lock_path`` for the duration of the block.

    Raises:
        LockTimeoutError: The lock was not acquired within ``timeout`` seconds.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(lock_path))
    try:
        lock.acquire(timeout=timeout)
    except Timeout as e:
        raise LockTimeoutError(agent_id, timeout) from e

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Acquired state lock for agent %s", agent_id)
    try:
        yield
    finally:
        lock.release()
