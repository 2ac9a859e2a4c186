from __future__ import annotations

import logging
from collections.abc import Callable

import redis

from chatroom.config import Settings
from chatroom.errors import DuplicateName, UnauthorizedSender, ValidationError
from chatroom.message_log import MessageLog, validate_outgoing
from chatroom.models import NAME_MAX_LENGTH, NAME_MIN_LENGTH, Message, Participant, format_clock, now_ms
from chatroom.presence import PresenceRegistry
from chatroom.storage import StorageGateway


logger = logging.getLogger(__name__)


def validate_name(name: str) -> None:
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise ValidationError(f"name must be {NAME_MIN_LENGTH}..{NAME_MAX_LENGTH} characters")


class ChatService:
    """Operations the transport layer calls.

    Sender/requester identities are opaque strings resolved by the caller;
    the only check made on them is whether they are currently in the room.
    """

    def __init__(
        self,
        *,
        presence: PresenceRegistry,
        log: MessageLog,
        clock: Callable[[], int] = now_ms,
        reserve_known_names: bool = False,
    ) -> None:
        self.presence = presence
        self.log = log
        self._clock = clock
        self._reserve_known_names = reserve_known_names

    def register(self, name: str) -> Participant:
        validate_name(name)
        if self._reserve_known_names and self.presence.is_known(name):
            raise DuplicateName(f"Name '{name}' has already been used")
        return self.presence.register(name)

    def heartbeat(self, name: str | None) -> None:
        self.presence.heartbeat(name or "")

    def leave(self, name: str | None) -> None:
        self.presence.leave(name or "")

    def list_participants(self) -> list[dict[str, str]]:
        return [{"name": p.name} for p in self.presence.list_active()]

    def post_message(self, *, sender: str | None, to: str, text: str, type: str) -> Message:
        if not sender or not self.presence.is_active(sender):
            raise UnauthorizedSender(f"Sender '{sender}' is not in the room")

        message_type = validate_outgoing(to=to, text=text, type=type)
        message = Message(from_=sender, to=to, text=text, type=message_type, time=format_clock(self._clock()))
        self.log.append(message)

        # Posting counts as activity; the sender may have been swept in between.
        if not self.presence.touch(sender):
            logger.info("sender %r left the room while posting", sender)
        return message

    def list_messages(self, for_user: str | None, limit: int | None = None) -> list[Message]:
        return self.log.list_visible(for_user, limit)


def build_chat_service(*, r: redis.Redis, settings: Settings, clock: Callable[[], int] = now_ms) -> ChatService:
    storage = StorageGateway(r=r, prefix=settings.key_prefix)
    log = MessageLog(storage=storage)
    presence = PresenceRegistry(storage=storage, log=log, clock=clock)
    return ChatService(presence=presence, log=log, clock=clock, reserve_known_names=settings.reserve_known_names)
