from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from chatroom.config import Settings
from chatroom.message_log import MessageLog
from chatroom.presence import PresenceRegistry
from chatroom.session import ChatService, build_chat_service
from chatroom.storage import StorageGateway


# 2023-11-14T22:13:20Z; any fixed instant works, tests only look at differences.
START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when a test advances it."""

    def __init__(self, start_ms: int = START_MS) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage(r: fakeredis.FakeRedis) -> StorageGateway:
    return StorageGateway(r=r, prefix="test")


@pytest.fixture()
def log(storage: StorageGateway) -> MessageLog:
    return MessageLog(storage=storage)


@pytest.fixture()
def presence(storage: StorageGateway, log: MessageLog, clock: FakeClock) -> PresenceRegistry:
    return PresenceRegistry(storage=storage, log=log, clock=clock)


@pytest.fixture()
def chat(r: fakeredis.FakeRedis, clock: FakeClock) -> ChatService:
    return build_chat_service(r=r, settings=Settings(key_prefix="test"), clock=clock)


@pytest.fixture()
def client_and_redis(r: fakeredis.FakeRedis) -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient wired to fakeredis, with the background sweep disabled."""

    from chatroom.main import create_app

    app = create_app(settings=Settings(sweep_enabled=False), redis_factory=lambda _settings: r)
    with TestClient(app) as c:
        yield c, r


@pytest.fixture()
def client(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> TestClient:
    return client_and_redis[0]
