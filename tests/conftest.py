"""
Shared fixtures: in-memory relay pieces plus fake sockets for both sides of the wire.
"""

import json
from typing import Any

import pytest
from starlette.websockets import WebSocketState
from websockets.protocol import State

from tactics_relay.client.controller import BoardController
from tactics_relay.server.config import Settings
from tactics_relay.server.registry import ConnectionRegistry
from tactics_relay.server.relay import RelayHandler
from tactics_relay.server.store import BoardStore


class FakeServerSocket:
    """Stands in for a FastAPI WebSocket as seen by the registry."""

    def __init__(self, *, ready: bool = True, broken: bool = False) -> None:
        state = WebSocketState.CONNECTED if ready else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state
        self.broken = broken
        self.sent: list[dict[str, Any]] = []

    async def send_text(self, data: str) -> None:
        if self.broken:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(data))

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


class FakeRelayConnection:
    """Stands in for a `websockets` client connection as seen by the controller."""

    def __init__(self, *, open_: bool = True) -> None:
        self.state = State.OPEN if open_ else State.CLOSED
        self.sent: list[dict[str, Any]] = []

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


@pytest.fixture
def settings() -> Settings:
    """Defaults only; nothing read from the environment matters for these tests."""
    return Settings(_env_file=None)


@pytest.fixture
def store() -> BoardStore:
    return BoardStore()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def relay(store: BoardStore, registry: ConnectionRegistry) -> RelayHandler:
    return RelayHandler(store, registry)


@pytest.fixture
def relay_conn() -> FakeRelayConnection:
    return FakeRelayConnection()


@pytest.fixture
def controller(settings: Settings, relay_conn: FakeRelayConnection) -> BoardController:
    """A controller that has already adopted the default board."""
    ctl = BoardController("ws://relay.test/ws", settings=settings)
    ctl.attach(relay_conn)
    ctl.state = BoardStore().snapshot()
    return ctl


@pytest.fixture
def make_socket() -> type[FakeServerSocket]:
    return FakeServerSocket
