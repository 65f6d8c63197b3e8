"""A registered relay connection."""
from __future__ import annotations

import asyncio
import logging

from starlette.websockets import WebSocketDisconnect

from relay_service.application.exceptions import ConnectionSendError, DispatcherClosedError
from relay_service.application.ports.clock import Clock, SystemClock, unix_now
from relay_service.application.ports.transport import Connection
from relay_service.domain.entities.message import Message
from relay_service.domain.value_objects.enums import MessageType
from relay_service.infrastructure.ws.dispatcher import Dispatcher
from relay_service.infrastructure.ws.heartbeat import HeartbeatMonitor
from relay_service.infrastructure.ws.protocol import encode_message

logger = logging.getLogger(__name__)

CLOSE_NORMAL = 1000


class Client:
    """Pairs one connection with its id and a one-shot cancellation signal.

    All writes to the connection go through ``_send_lock``, so the read loop,
    the heartbeat monitor and dispatcher fan-out never interleave frames.
    """

    def __init__(
        self,
        client_id: str,
        connection: Connection,
        dispatcher: Dispatcher,
        *,
        send_timeout: float | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.id = client_id
        self._connection = connection
        self._dispatcher = dispatcher
        self._send_timeout = send_timeout
        self._clock = clock or SystemClock()
        self._send_lock = asyncio.Lock()
        self._cancelled = asyncio.Event()
        self._closing = False
        self._heartbeat: HeartbeatMonitor | None = None

    def __repr__(self) -> str:
        return f"Client(id={self.id!r}, closing={self._closing})"

    @property
    def cancelled(self) -> asyncio.Event:
        return self._cancelled

    @property
    def closing(self) -> bool:
        return self._closing

    def cancel(self) -> None:
        self._cancelled.set()

    def start_heartbeat(self, interval: float) -> HeartbeatMonitor:
        if self._heartbeat is not None:
            raise RuntimeError(f"heartbeat already running for {self.id}")
        self._heartbeat = HeartbeatMonitor(self, interval)
        self._heartbeat.start()
        return self._heartbeat

    async def read_message(self) -> str | bytes:
        """Next text or binary frame; raises ``WebSocketDisconnect`` when the peer leaves."""
        message = await self._connection.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", CLOSE_NORMAL), message.get("reason"))
        text = message.get("text")
        if text is not None:
            return text
        return message["bytes"]

    async def send_message(self, message_type: int, content: str) -> None:
        if message_type == MessageType.BREAK:
            try:
                async with self._send_lock:
                    await self._connection.close(code=CLOSE_NORMAL, reason="close")
            except Exception as exc:
                logger.warning("Close frame to %s failed: %r", self.id, exc)
                await self.close()
                raise ConnectionSendError(f"close frame to {self.id} failed: {exc!r}") from exc
            return

        await self.deliver(self._own_message(message_type, content))

    async def deliver(self, message: Message) -> None:
        """Write an envelope; on failure tear this client down and re-raise."""
        raw = encode_message(message)
        try:
            async with self._send_lock:
                await asyncio.wait_for(self._connection.send_text(raw), self._send_timeout)
        except Exception as exc:
            logger.warning("Send to %s failed (type=%d): %r", self.id, message.type, exc)
            await self.close()
            raise ConnectionSendError(f"send to {self.id} failed: {exc!r}") from exc

    async def broadcast(self, text: str) -> None:
        await self._dispatcher.broadcast(self._own_message(MessageType.BROADCAST, text))

    async def sys_broadcast(self, text: str) -> None:
        await self._dispatcher.broadcast(self._own_message(MessageType.SYSTEM, text))

    async def close(self) -> None:
        """Signal cancellation, announce the departure and enqueue destroy.

        Safe to call any number of times; only the first call has effect.
        """
        if self._closing:
            return
        self._closing = True
        self.cancel()
        try:
            await self._dispatcher.broadcast(self._own_message(MessageType.DISCONNECTED, ""))
            await self._dispatcher.destroy(self)
        except DispatcherClosedError:
            logger.debug("Dispatcher already closed while closing %s", self.id)

    async def disconnect(self) -> None:
        """Close the transport. Called by the dispatcher on destroy."""
        async with self._send_lock:
            await self._connection.close(code=CLOSE_NORMAL)

    def _own_message(self, message_type: int, content: str) -> Message:
        return Message(
            id=self.id,
            content=content,
            sent_at=unix_now(self._clock),
            type=message_type,
        )


async def new_client(
    client_id: str,
    connection: Connection,
    dispatcher: Dispatcher,
    *,
    send_timeout: float | None = None,
    clock: Clock | None = None,
) -> Client:
    """Complete the handshake, wrap the connection and register it."""
    await connection.accept()
    client = Client(client_id, connection, dispatcher, send_timeout=send_timeout, clock=clock)
    await dispatcher.register(client)
    return client
