"""Shared test fixtures."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import pytest

from relay_service.domain.entities.message import Message
from relay_service.infrastructure.ws.client import Client
from relay_service.infrastructure.ws.dispatcher import Dispatcher, DispatcherStats
from relay_service.infrastructure.ws.protocol import decode_message


class FakeConnection:
    """In-memory stand-in for a WebSocket."""

    def __init__(
        self,
        *,
        fail_send: bool = False,
        accept_error: Exception | None = None,
        send_delay: float = 0.0,
    ) -> None:
        self.fail_send = fail_send
        self.accept_error = accept_error
        self.send_delay = send_delay
        self.accepted = False
        self.sent: list[str] = []
        self.closes: list[tuple[int, str | None]] = []
        self.inbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def closed(self) -> bool:
        return bool(self.closes)

    async def accept(self) -> None:
        if self.accept_error is not None:
            raise self.accept_error
        self.accepted = True

    async def receive(self) -> dict[str, Any]:
        return await self.inbox.get()

    def feed_text(self, data: str) -> None:
        self.inbox.put_nowait({"type": "websocket.receive", "text": data})

    def feed_bytes(self, data: bytes) -> None:
        self.inbox.put_nowait({"type": "websocket.receive", "bytes": data})

    def feed_disconnect(self, code: int = 1000) -> None:
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    async def send_text(self, data: str) -> None:
        if self.fail_send or self.closed:
            raise RuntimeError("connection is closed")
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.send_delay:
                await asyncio.sleep(self.send_delay)
            self.sent.append(data)
        finally:
            self.in_flight -= 1

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        if self.closed:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.closes.append((code, reason))

    def messages(self) -> list[Message]:
        return [decode_message(raw) for raw in self.sent]

    def contents(self, message_type: int | None = None) -> list[str]:
        return [
            m.content for m in self.messages()
            if message_type is None or m.type == message_type
        ]


@dataclass
class RecordingDispatcher:
    """Captures what a client enqueues without running a loop."""

    registered: list[Client] = field(default_factory=list)
    destroyed: list[Client] = field(default_factory=list)
    broadcasts: list[Message] = field(default_factory=list)
    count: int = 0
    stats: DispatcherStats = field(default_factory=DispatcherStats)

    async def register(self, client: Client) -> None:
        self.registered.append(client)

    async def destroy(self, client: Client) -> None:
        self.destroyed.append(client)

    async def broadcast(self, message: Message) -> None:
        self.broadcasts.append(message)


@dataclass
class RecordingHandler:
    calls: list[tuple[Any, ...]] = field(default_factory=list)
    initialized: bool = False
    closed: bool = False

    async def on_register(self, client: Client) -> None:
        self.calls.append(("register", client.id))

    async def on_destroy(self, client: Client) -> None:
        self.calls.append(("destroy", client.id))

    async def on_heartbeat(self, message: Message, client: Client) -> None:
        self.calls.append(("heartbeat", message.type, client.id))

    async def on_broadcast(self, message: Message, client: Client) -> None:
        self.calls.append(("broadcast", message.type, client.id))

    async def on_default(self, message_type: int, message: Message, client: Client) -> None:
        self.calls.append(("default", message_type, client.id))

    async def init(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    def status(self) -> dict[str, Any]:
        return {"handler": "recording", "calls": len(self.calls)}


@asynccontextmanager
async def running_dispatcher(**kwargs: Any) -> AsyncIterator[Dispatcher]:
    dispatcher = Dispatcher(**kwargs)
    dispatcher.start()
    try:
        yield dispatcher
    finally:
        if not dispatcher.closed:
            await dispatcher.shutdown()
        await dispatcher.wait_closed()


def make_message(sender: str = "a", content: str = "hi", message_type: int = 1) -> Message:
    return Message(id=sender, content=content, sent_at=1_700_000_000, type=message_type)


@pytest.fixture
def recording_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def recording_handler() -> RecordingHandler:
    return RecordingHandler()
