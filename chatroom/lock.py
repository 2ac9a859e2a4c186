from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import redis

from chatroom.errors import LockBusy
from chatroom.storage import storage_errors


@contextmanager
def redis_lock(*, r: redis.Redis, key: str, ttl_ms: int = 30_000) -> Iterator[None]:
    """Best-effort exclusive lock held for the duration of the block.

    The TTL bounds how long a crashed holder can keep the lock. Release only
    deletes the key if it still carries our token; the get/delete pair is not
    atomic, so a lock that expired mid-block can in rare cases be released
    from under the next holder.
    """

    token = uuid.uuid4().hex
    with storage_errors():
        acquired = r.set(key, token, nx=True, px=ttl_ms)
    if not acquired:
        raise LockBusy(f"{key} is held by another process")
    try:
        yield
    finally:
        with storage_errors():
            if r.get(key) == token:
                r.delete(key)
