"""Connection registry and event dispatcher.

A single asyncio task owns the registry. Every registration, destruction
and broadcast is enqueued on one bounded mailbox and handled by that task
one event at a time, so the mapping is never touched concurrently and no
lock guards it.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextvars import ContextVar
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from relay_service.application.exceptions import DispatcherClosedError
from relay_service.application.ports.clock import Clock, SystemClock, unix_now
from relay_service.domain.entities.message import Message
from relay_service.domain.value_objects.enums import MessageType

if TYPE_CHECKING:
    from relay_service.infrastructure.ws.client import Client

logger = logging.getLogger(__name__)

# Set inside the dispatcher task (and tasks it spawns) to the owning dispatcher.
_dispatching: ContextVar[Dispatcher | None] = ContextVar("dispatching", default=None)

ShutdownMode = Literal["drain", "immediate"]


class EventKind(StrEnum):
    REGISTER = "register"
    DESTROY = "destroy"
    BROADCAST = "broadcast"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True, slots=True)
class _Event:
    kind: EventKind
    client: Client | None = None
    message: Message | None = None


@dataclass(slots=True)
class DispatcherStats:
    processed: int = 0
    registered: int = 0
    destroyed: int = 0
    broadcasts: int = 0
    delivered: int = 0
    failed: int = 0


class Dispatcher:
    """Serialized owner of the live client registry."""

    def __init__(
        self,
        capacity: int = 1000,
        *,
        shutdown_mode: ShutdownMode = "drain",
        clock: Clock | None = None,
    ) -> None:
        self._clients: dict[str, Client] = {}
        self._count = 0
        self._mailbox: asyncio.Queue[_Event] = asyncio.Queue(maxsize=capacity)
        self._backlog: deque[_Event] = deque()
        self._shutdown_mode = shutdown_mode
        self._clock = clock or SystemClock()
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self.stats = DispatcherStats()

    @property
    def count(self) -> int:
        return self._count

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> dict[str, Client]:
        """Copy of the registry, for introspection only."""
        return dict(self._clients)

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("dispatcher already started")
        self._task = asyncio.create_task(self._run(), name="relay-dispatcher")
        logger.info("Dispatcher started (capacity=%d)", self._mailbox.maxsize)

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def join(self) -> None:
        """Wait until every event enqueued so far has been handled."""
        await self._mailbox.join()

    # -- producers --------------------------------------------------------

    async def register(self, client: Client) -> None:
        await self._enqueue(_Event(EventKind.REGISTER, client=client))

    async def destroy(self, client: Client) -> None:
        await self._enqueue(_Event(EventKind.DESTROY, client=client))

    async def broadcast(self, message: Message) -> None:
        await self._enqueue(_Event(EventKind.BROADCAST, message=message))

    async def sys_broadcast(self, message_type: int, message: Message) -> None:
        await self.broadcast(message.with_type(message_type))

    async def shutdown(self) -> None:
        await self._enqueue(_Event(EventKind.SHUTDOWN))

    async def _enqueue(self, event: _Event) -> None:
        if self._closed:
            raise DispatcherClosedError(f"dispatcher closed, dropping {event.kind} event")
        if _dispatching.get() is self:
            # Raised by the loop itself: waiting on our own mailbox could deadlock.
            self._backlog.append(event)
            return
        await self._mailbox.put(event)
        if self._closed:
            # Woken from a full mailbox after the loop stopped; nobody will read this.
            self._discard_pending()
            raise DispatcherClosedError(f"dispatcher closed, dropping {event.kind} event")

    # -- the loop ----------------------------------------------------------

    async def _run(self) -> None:
        _dispatching.set(self)
        logger.info("Dispatcher listening for events")
        try:
            while not self._closed:
                event = await self._mailbox.get()
                try:
                    await self._handle(event)
                    while self._backlog and not self._closed:
                        await self._handle(self._backlog.popleft())
                except Exception:
                    logger.exception("Dispatcher failed handling %s event", event.kind)
                finally:
                    self._mailbox.task_done()
        finally:
            self._closed = True
            self._discard_pending()
            logger.info("Dispatcher stopped")

    async def _handle(self, event: _Event) -> None:
        self.stats.processed += 1
        if event.kind is EventKind.REGISTER:
            assert event.client is not None
            await self._on_register(event.client)
        elif event.kind is EventKind.DESTROY:
            assert event.client is not None
            await self._on_destroy(event.client)
        elif event.kind is EventKind.BROADCAST:
            assert event.message is not None
            await self._fan_out(event.message)
        elif event.kind is EventKind.SHUTDOWN:
            await self._on_shutdown()

    async def _on_register(self, client: Client) -> None:
        logger.info("Register event: %s", client.id)
        if client.id in self._clients:
            logger.debug("Client id %s re-registered, replacing previous entry", client.id)
        else:
            self._count += 1
        self._clients[client.id] = client
        self.stats.registered += 1
        await self._fan_out(
            Message(
                id=client.id,
                content="connected",
                sent_at=unix_now(self._clock),
                type=MessageType.CONNECTED,
            )
        )

    async def _on_destroy(self, client: Client) -> None:
        logger.info("Destroy event: %s", client.id)
        try:
            await client.disconnect()
        except Exception as exc:
            # Usually the peer is already gone and the socket is closed.
            logger.debug("Destroy of %s: closing connection failed: %r", client.id, exc)
        if self._clients.get(client.id) is client:
            del self._clients[client.id]
            self._count -= 1
            self.stats.destroyed += 1

    async def _fan_out(self, message: Message) -> None:
        logger.debug("Broadcast event: %s %r %d", message.id, message.content, message.type)
        self.stats.broadcasts += 1
        recipients = [c for cid, c in self._clients.items() if cid != message.id]
        if not recipients:
            return
        results = await asyncio.gather(
            *(c.deliver(message) for c in recipients),
            return_exceptions=True,
        )
        for client, result in zip(recipients, results):
            if isinstance(result, BaseException):
                self.stats.failed += 1
                logger.warning("Broadcast to %s failed: %r", client.id, result)
            else:
                self.stats.delivered += 1

    async def _on_shutdown(self) -> None:
        logger.info("Shutdown event (mode=%s, clients=%d)", self._shutdown_mode, self._count)
        if self._shutdown_mode == "drain":
            for client in list(self._clients.values()):
                client.cancel()
                try:
                    # BREAK goes out as a close frame, which also closes our side.
                    await client.send_message(MessageType.BREAK, "")
                except Exception as exc:
                    logger.warning("Break to %s failed: %r", client.id, exc)
            self._clients.clear()
            self._count = 0
        self._closed = True

    def _discard_pending(self) -> None:
        dropped = len(self._backlog)
        self._backlog.clear()
        while True:
            try:
                self._mailbox.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._mailbox.task_done()
            dropped += 1
        if dropped:
            logger.warning("Dispatcher dropped %d events queued after shutdown", dropped)
