"""
Shared test fixtures and configuration for entire test suite.

Provides: in-memory chat state database, settings, fake upstream transports
Dependencies: pytest, sqlalchemy, aiosqlite, httpx
System role: Test infrastructure and fixture management
"""

import json
from collections.abc import Callable, Iterable

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from chatbox.boundary.db.base import Base
from chatbox.boundary.db.models import ChatStateModel  # noqa: F401
from chatbox.configs import Settings
from chatbox.configs.client import ClientSettings
from chatbox.configs.ollama import OllamaSettings
from chatbox.configs.throttle import ThrottleSettings


def ndjson(*objects: dict) -> bytes:
    """Encode objects the way the upstream streams them."""
    return b"".join(json.dumps(obj).encode() + b"\n" for obj in objects)


def sse(*objects: dict) -> bytes:
    """Encode objects the way the relay streams them."""
    return b"".join(b"data: " + json.dumps(obj).encode() + b"\n\n" for obj in objects)


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in caller-chosen pieces."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self.chunks = list(chunks)

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


@pytest.fixture
async def session_factory():
    """
    Create in-memory SQLite async database for testing.

    Yields:
        async_sessionmaker: Session factory bound to a fresh database
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_async_db(session_factory):
    """Single session on the in-memory database."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a fast throttle and local URLs."""
    return Settings(
        ollama=OllamaSettings(base_url="http://ollama.test"),
        throttle=ThrottleSettings(max_concurrent=3, request_delay_ms=10, max_queue_depth=50),
        client=ClientSettings(relay_base_url="http://relay.test"),
    )


@pytest.fixture
def client_settings() -> ClientSettings:
    return ClientSettings(relay_base_url="http://relay.test", max_connection_retries=3)


@pytest.fixture
def make_transport() -> Callable[..., httpx.MockTransport]:
    """
    Build a MockTransport from a handler and keep the requests it saw.

    Usage:
        transport = make_transport(handler)
        ... transport.requests ...
    """

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
        requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        transport = httpx.MockTransport(recording_handler)
        transport.requests = requests
        return transport

    return factory


@pytest.fixture
def encode_ndjson() -> Callable[..., bytes]:
    return ndjson


@pytest.fixture
def encode_sse() -> Callable[..., bytes]:
    return sse


@pytest.fixture
def chunked() -> Callable[[Iterable[bytes]], ChunkedStream]:
    """Factory for response bodies split into explicit reads."""
    return ChunkedStream
