from __future__ import annotations

import redis
from fastapi import Depends, Request

from chatroom.config import Settings
from chatroom.session import ChatService, build_chat_service


def get_redis(request: Request) -> redis.Redis:
    # Opened (and pinged) once at startup; see chatroom.main.
    return request.app.state.redis


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_chat(
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> ChatService:
    return build_chat_service(r=r, settings=settings)
