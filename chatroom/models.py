from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


# Reserved recipient meaning "everyone in the room".
BROADCAST = "Todos"

ARRIVAL_TEXT = "entra na sala..."
DEPARTURE_TEXT = "sai da sala..."

NAME_MIN_LENGTH = 1
NAME_MAX_LENGTH = 40
TEXT_MIN_LENGTH = 1
TEXT_MAX_LENGTH = 250


def now_ms() -> int:
    return int(time.time() * 1000)


def format_clock(at_ms: int) -> str:
    """Render a millisecond timestamp as `HH:MM:SS` on the service's local clock."""

    return datetime.fromtimestamp(at_ms / 1000).strftime("%H:%M:%S")


class MessageType(StrEnum):
    message = "message"
    private_message = "private_message"
    status = "status"


# Types a participant may post; `status` is reserved for arrival/departure events.
POSTABLE_TYPES = frozenset({MessageType.message, MessageType.private_message})


@dataclass(frozen=True, slots=True)
class Participant:
    name: str
    last_seen: int


class Message(BaseModel):
    """One immutable chat event as stored in the message log."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_: str = Field(..., alias="from")
    to: str
    text: str
    type: MessageType
    time: str

    def is_visible_to(self, user: str | None) -> bool:
        if self.type in (MessageType.status, MessageType.message):
            return True
        return user is not None and (self.from_ == user or self.to == user)


def status_message(*, name: str, text: str, at_ms: int) -> Message:
    return Message(from_=name, to=BROADCAST, text=text, type=MessageType.status, time=format_clock(at_ms))
