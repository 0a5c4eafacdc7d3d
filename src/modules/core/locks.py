"""Cache-backed advisory locks.

Used to keep scheduled jobs single-flight across Celery workers. The lock is
a cache key created with ``cache.add`` (atomic on Redis and locmem) and a
TTL, so a crashed holder cannot block later runs forever.
"""

from __future__ import annotations

import secrets
from contextlib import contextmanager
from typing import Iterator

import structlog
from django.core.cache import cache

logger = structlog.get_logger(__name__)

LOCK_PREFIX = "advisory-lock:"


@contextmanager
def advisory_lock(name: str, timeout: int) -> Iterator[bool]:
    """Try to take the named lock for at most *timeout* seconds.

    Yields ``True`` when this caller holds the lock and ``False`` when another
    holder already has it. Never blocks.
    """
    key = f"{LOCK_PREFIX}{name}"
    token = secrets.token_hex(16)
    acquired = cache.add(key, token, timeout)
    if not acquired:
        logger.info("lock.busy", lock=name)
    try:
        yield acquired
    finally:
        # only the owner releases; an expired lock may belong to someone else
        if acquired and cache.get(key) == token:
            cache.delete(key)
