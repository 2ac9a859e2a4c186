from __future__ import annotations

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
import redis

from chatroom.api.deps import get_chat, get_redis
from chatroom.api.models import MessageCreateRequest, ParticipantCreateRequest, ParticipantOut, StatusResponse
from chatroom.errors import DuplicateName, UnauthorizedSender, UnknownParticipant, ValidationError
from chatroom.models import Message
from chatroom.session import ChatService
from chatroom.storage import StorageGateway

router = APIRouter()


@router.get("/healthcheck", response_model=StatusResponse)
def healthcheck(r: redis.Redis = Depends(get_redis)) -> StatusResponse:
    # Raises StorageUnavailable (-> 500) when Redis does not answer.
    StorageGateway(r=r).ping()
    return StatusResponse()


@router.post("/participants", response_model=ParticipantOut, status_code=status.HTTP_201_CREATED)
def register_route(payload: ParticipantCreateRequest, chat: ChatService = Depends(get_chat)) -> ParticipantOut:
    try:
        participant = chat.register(payload.name)
    except DuplicateName as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return ParticipantOut(name=participant.name)


@router.get("/participants", response_model=list[ParticipantOut])
def list_participants_route(chat: ChatService = Depends(get_chat)) -> list[ParticipantOut]:
    return [ParticipantOut(**p) for p in chat.list_participants()]


@router.delete("/participants", response_model=StatusResponse)
def leave_route(user: str | None = Header(default=None), chat: ChatService = Depends(get_chat)) -> StatusResponse:
    try:
        chat.leave(user)
    except UnknownParticipant as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return StatusResponse()


@router.post("/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
def post_message_route(
    payload: MessageCreateRequest,
    user: str | None = Header(default=None),
    chat: ChatService = Depends(get_chat),
) -> Message:
    try:
        return chat.post_message(sender=user, to=payload.to, text=payload.text, type=payload.type)
    except (UnauthorizedSender, ValidationError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.get("/messages", response_model=list[Message])
def list_messages_route(
    limit: int | None = Query(default=None),
    user: str | None = Header(default=None),
    chat: ChatService = Depends(get_chat),
) -> list[Message]:
    try:
        return chat.list_messages(user, limit)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e


@router.post("/status", response_model=StatusResponse)
def heartbeat_route(user: str | None = Header(default=None), chat: ChatService = Depends(get_chat)) -> StatusResponse:
    try:
        chat.heartbeat(user)
    except UnknownParticipant as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return StatusResponse()
