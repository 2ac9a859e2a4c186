from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from chatroom.models import NAME_MAX_LENGTH, NAME_MIN_LENGTH, TEXT_MAX_LENGTH, TEXT_MIN_LENGTH


class ParticipantCreateRequest(BaseModel):
    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)


class ParticipantOut(BaseModel):
    name: str


class MessageCreateRequest(BaseModel):
    to: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    text: str = Field(..., min_length=TEXT_MIN_LENGTH, max_length=TEXT_MAX_LENGTH)
    type: Literal["message", "private_message"]


class StatusResponse(BaseModel):
    status: str = "ok"
