from __future__ import annotations

import logging
import random
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from .log_store import LogStore

"""Sequence allocator for transmittal numbers.

Identifiers look like ``YYYYMMDD-NNNN``: the current date in UTC+8 followed
by a random four digit suffix (1000-9999). The suffix is redrawn until it is
absent from every identifier already in the central log, at most
``max_attempts`` times. The whole read-and-draw runs under the log lock.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "SequenceAllocator",
    "ExhaustedAttempts",
    "LOCAL_TZ",
    "SUFFIX_MIN",
    "SUFFIX_MAX",
]

# 固定 UTC+8 (DST なし)
LOCAL_TZ = timezone(timedelta(hours=8), "UTC+08:00")
SUFFIX_MIN = 1000
SUFFIX_MAX = 9999


class ExhaustedAttempts(Exception):
    """Raised when every drawn suffix collided with an existing identifier."""

    def __init__(self, prefix: str, attempts: int) -> None:
        super().__init__(f"no free transmittal number for {prefix} after {attempts} attempts; try again")
        self.prefix = prefix
        self.attempts = attempts


def local_now() -> datetime:
    return datetime.now(LOCAL_TZ)


class SequenceAllocator:
    def __init__(
        self,
        store: LogStore,
        lock_timeout: float = 30.0,
        max_attempts: int = 100,
        clock: Callable[[], datetime] = local_now,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.lock_timeout = lock_timeout
        self.max_attempts = max_attempts
        self.clock = clock
        self.rng = rng if rng is not None else random.SystemRandom()

    def prefix(self) -> str:
        return self.clock().astimezone(LOCAL_TZ).strftime("%Y%m%d")

    def allocate(self) -> str:
        """Return a transmittal number not yet present in the central log.

        Raises:
            Busy: the log lock was not acquired within ``lock_timeout``
            ExhaustedAttempts: ``max_attempts`` draws all collided
        """
        with self.store.lock(self.lock_timeout):
            existing = self.store.read_identifiers()
            prefix = self.prefix()
            for attempt in range(1, self.max_attempts + 1):
                candidate = f"{prefix}-{self.rng.randint(SUFFIX_MIN, SUFFIX_MAX)}"
                if candidate not in existing:
                    logger.info(f"allocated transmittal_no={candidate} attempt={attempt}")
                    return candidate
        raise ExhaustedAttempts(prefix, self.max_attempts)
