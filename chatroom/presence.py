from __future__ import annotations

import logging
from collections.abc import Callable

import redis

from chatroom.errors import DuplicateName, StorageUnavailable, UnknownParticipant
from chatroom.message_log import MessageLog
from chatroom.models import ARRIVAL_TEXT, DEPARTURE_TEXT, Participant, now_ms, status_message
from chatroom.storage import StorageGateway


logger = logging.getLogger(__name__)

DEFAULT_INACTIVITY_TIMEOUT_MS = 10_000


class PresenceRegistry:
    """Who is in the room, and since when they were last heard from.

    Arrivals and departures are announced through the message log. The
    participant write and the status message are two separate writes: if the
    second one fails the participant stays registered without an event.
    """

    def __init__(self, *, storage: StorageGateway, log: MessageLog, clock: Callable[[], int] = now_ms) -> None:
        self._storage = storage
        self._log = log
        self._clock = clock

    def register(self, name: str) -> Participant:
        now = self._clock()
        if not self._storage.insert_participant(name=name, last_seen=now):
            raise DuplicateName(f"Participant '{name}' is already in the room")

        self._storage.add_known_name(name)
        self._log.append(status_message(name=name, text=ARRIVAL_TEXT, at_ms=now))
        logger.info("participant %r joined", name)
        return Participant(name=name, last_seen=now)

    def touch(self, name: str) -> bool:
        """Refresh `last_seen`; False if the participant is not in the room."""

        return self._storage.update_participant(name=name, last_seen=self._clock())

    def heartbeat(self, name: str) -> None:
        if not self.touch(name):
            raise UnknownParticipant(f"Participant '{name}' is not in the room")

    def is_active(self, name: str) -> bool:
        return self._storage.find_participant(name) is not None

    def is_known(self, name: str) -> bool:
        return self._storage.is_known_name(name)

    def list_active(self) -> list[Participant]:
        return [Participant(name=n, last_seen=seen) for n, seen in self._storage.list_participants().items()]

    def leave(self, name: str) -> None:
        if not self._storage.delete_participant(name):
            raise UnknownParticipant(f"Participant '{name}' is not in the room")

        self._log.append(status_message(name=name, text=DEPARTURE_TEXT, at_ms=self._clock()))
        logger.info("participant %r left", name)

    def sweep(self, *, now: int | None = None, timeout_ms: int = DEFAULT_INACTIVITY_TIMEOUT_MS) -> list[str]:
        """Remove participants idle for more than `timeout_ms`.

        Staleness is re-checked at delete time, so a heartbeat that lands
        after the snapshot keeps the participant in the room. A departure
        message is appended only for participants this call actually removed.
        Failures are logged per participant and do not stop the sweep.

        Returns the names that were removed.
        """

        at = self._clock() if now is None else now

        def _stale(last_seen: int) -> bool:
            return at - last_seen > timeout_ms

        removed: list[str] = []
        for participant in self.list_active():
            if not _stale(participant.last_seen):
                continue
            try:
                if not self._storage.delete_participant_if(name=participant.name, check=_stale):
                    continue
                removed.append(participant.name)
                self._log.append(status_message(name=participant.name, text=DEPARTURE_TEXT, at_ms=at))
            except (StorageUnavailable, redis.RedisError):
                logger.exception("failed to sweep participant %r", participant.name)
                continue
            logger.info("participant %r swept after inactivity", participant.name)

        return removed
