"""Pytest fixtures for schwab-session tests"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from schwab_session.infrastructure.brokers.schwab import RetryPolicy, StreamerInfo


class FakeTokenProvider:
    """Token provider that hands out numbered tokens and counts refreshes"""

    def __init__(self) -> None:
        self.calls = 0
        self.refreshes = 0

    async def get_access_token(self, force_refresh: bool = False) -> str:
        self.calls += 1
        if force_refresh:
            self.refreshes += 1
        return f"token-{self.refreshes}"


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection"""

    def __init__(self, incoming: list[str] | None = None) -> None:
        self.url: str | None = None
        self.sent: list[str] = []
        self.closed = False
        self._incoming = list(incoming or [])

    async def send(self, frame: str) -> None:
        # Yield so concurrent senders interleave
        await asyncio.sleep(0)
        self.sent.append(frame)

    async def close(self) -> None:
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for raw in self._incoming:
            yield raw


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that returns immediately"""
    return AsyncMock(return_value=None)


@pytest.fixture
def retry_policy(no_sleep) -> RetryPolicy:
    """Default 3 x 2s policy without real delays"""
    return RetryPolicy(max_attempts=3, interval_seconds=2.0, sleep=no_sleep)


@pytest.fixture
def token_provider() -> FakeTokenProvider:
    return FakeTokenProvider()


@pytest.fixture
def streamer_info() -> StreamerInfo:
    """Streamer parameters as returned by the user preference endpoint"""
    return StreamerInfo.model_validate(
        {
            "streamerSocketUrl": "wss://streamer-api.schwab.com/ws",
            "schwabClientCustomerId": "customer-123",
            "schwabClientCorrelId": "correl-456",
            "schwabClientChannel": "N9",
            "schwabClientFunctionId": "APIAPP",
        }
    )


@pytest.fixture
def fake_websocket() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def connector(fake_websocket):
    """Connector returning the shared fake socket"""

    async def _connect(url: str) -> FakeWebSocket:
        fake_websocket.url = url
        return fake_websocket

    return _connect
