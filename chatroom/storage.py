from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import cast

import redis

from chatroom.errors import StorageUnavailable


logger = logging.getLogger(__name__)

PARTICIPANTS = "participants"  # hash: name -> last_seen (epoch ms)
KNOWN_NAMES = "names"  # set of every name ever registered
MESSAGES = "messages"  # stream, one entry per message

# Optimistic transactions on the participants hash are retried this many times
# before giving up.
_WATCH_RETRIES = 5


@contextmanager
def storage_errors() -> Iterator[None]:
    """Translate Redis connectivity failures into `StorageUnavailable`."""

    try:
        yield
    except (redis.ConnectionError, redis.TimeoutError) as e:
        raise StorageUnavailable(f"storage unavailable: {e}") from e


class StorageGateway:
    """Redis-backed collections for participants, known names and messages.

    Each collection lives under its own key and is written independently;
    nothing here spans more than one collection in a transaction.
    """

    def __init__(self, *, r: redis.Redis, prefix: str = "chatroom") -> None:
        self._r = r
        self._prefix = prefix

    @property
    def redis(self) -> redis.Redis:
        return self._r

    def key(self, collection: str) -> str:
        return f"{self._prefix}:{collection}"

    def ping(self) -> None:
        with storage_errors():
            self._r.ping()

    # ---- participants ----

    def insert_participant(self, *, name: str, last_seen: int) -> bool:
        """Create the participant unless the name is already present.

        Returns False when the name is taken.
        """

        with storage_errors():
            return bool(self._r.hsetnx(self.key(PARTICIPANTS), name, str(last_seen)))

    def find_participant(self, name: str) -> int | None:
        with storage_errors():
            raw = self._r.hget(self.key(PARTICIPANTS), name)
        return None if raw is None else int(raw)

    def list_participants(self) -> dict[str, int]:
        with storage_errors():
            raw = cast(Mapping[str, str], self._r.hgetall(self.key(PARTICIPANTS)))
        return {name: int(seen) for name, seen in raw.items()}

    def update_participant(self, *, name: str, last_seen: int) -> bool:
        """Set `last_seen` for an existing participant.

        Never re-creates a participant that was removed concurrently. Returns
        False when the name is not present.
        """

        def _apply(pipe: redis.client.Pipeline, key: str) -> None:
            pipe.hset(key, name, str(last_seen))

        return self._modify_if(name=name, check=lambda _seen: True, apply=_apply)

    def delete_participant(self, name: str) -> bool:
        with storage_errors():
            return bool(self._r.hdel(self.key(PARTICIPANTS), name))

    def delete_participant_if(self, *, name: str, check: Callable[[int], bool]) -> bool:
        """Delete the participant only if `check(last_seen)` holds at delete time.

        The stored value is re-read under WATCH, so a concurrent update that
        lands between the read and the delete aborts the delete and the check
        is evaluated again against the fresh value.
        """

        def _apply(pipe: redis.client.Pipeline, key: str) -> None:
            pipe.hdel(key, name)

        return self._modify_if(name=name, check=check, apply=_apply)

    def _modify_if(
        self,
        *,
        name: str,
        check: Callable[[int], bool],
        apply: Callable[[redis.client.Pipeline, str], None],
    ) -> bool:
        key = self.key(PARTICIPANTS)
        with storage_errors(), self._r.pipeline() as pipe:
            for _ in range(_WATCH_RETRIES):
                try:
                    pipe.watch(key)
                    raw = pipe.hget(key, name)
                    if raw is None or not check(int(raw)):
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    apply(pipe, key)
                    pipe.execute()
                    return True
                except redis.WatchError:
                    logger.debug("participants changed while updating %r; retrying", name)
                    continue
        raise StorageUnavailable(f"participant {name!r} kept changing; gave up after {_WATCH_RETRIES} attempts")

    # ---- known names ----

    def add_known_name(self, name: str) -> None:
        with storage_errors():
            self._r.sadd(self.key(KNOWN_NAMES), name)

    def is_known_name(self, name: str) -> bool:
        with storage_errors():
            return bool(self._r.sismember(self.key(KNOWN_NAMES), name))

    # ---- messages ----

    def insert_message(self, fields: Mapping[str, str]) -> str:
        with storage_errors():
            # redis-py stubs expect field/value unions; messages only carry strings.
            stream_id = self._r.xadd(self.key(MESSAGES), {str(k): str(v) for k, v in fields.items()})
        return cast(str, stream_id)

    def list_messages(self) -> list[dict[str, str]]:
        """Every stored message in insertion order."""

        with storage_errors():
            entries = self._r.xrange(self.key(MESSAGES))
        return [dict(fields) for _id, fields in entries]
