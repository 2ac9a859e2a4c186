from __future__ import annotations

from chatroom.errors import InvalidMessageType, ValidationError
from chatroom.models import (
    NAME_MAX_LENGTH,
    NAME_MIN_LENGTH,
    POSTABLE_TYPES,
    TEXT_MAX_LENGTH,
    TEXT_MIN_LENGTH,
    Message,
    MessageType,
)
from chatroom.storage import StorageGateway


def validate_outgoing(*, to: str, text: str, type: str) -> MessageType:
    """Check a participant-posted message body and return its parsed type."""

    if not NAME_MIN_LENGTH <= len(to) <= NAME_MAX_LENGTH:
        raise ValidationError(f"to must be {NAME_MIN_LENGTH}..{NAME_MAX_LENGTH} characters")
    if not TEXT_MIN_LENGTH <= len(text) <= TEXT_MAX_LENGTH:
        raise ValidationError(f"text must be {TEXT_MIN_LENGTH}..{TEXT_MAX_LENGTH} characters")
    try:
        message_type = MessageType(type)
    except ValueError as e:
        raise InvalidMessageType(f"Unknown message type: {type}") from e
    if message_type not in POSTABLE_TYPES:
        allowed = ",".join(sorted(t.value for t in POSTABLE_TYPES))
        raise InvalidMessageType(f"Message type '{type}' cannot be posted (allowed: {allowed})")
    return message_type


class MessageLog:
    """Append-only sequence of chat events."""

    def __init__(self, *, storage: StorageGateway) -> None:
        self._storage = storage

    def append(self, message: Message) -> None:
        self._storage.insert_message(message.model_dump(by_alias=True, mode="json"))

    def list_all(self) -> list[Message]:
        return [Message.model_validate(fields) for fields in self._storage.list_messages()]

    def list_visible(self, for_user: str | None, limit: int | None = None) -> list[Message]:
        """Messages `for_user` may see, oldest first.

        Status and public messages are visible to everyone; private messages
        only to their sender and recipient. With `limit`, only the last
        `limit` visible messages are returned.
        """

        if limit is not None and limit < 1:
            raise ValidationError("limit must be a positive integer")

        visible = [m for m in self.list_all() if m.is_visible_to(for_user)]
        if limit is not None:
            visible = visible[-limit:]
        return visible
