from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from relay_service.application.ports.clock import Clock, SystemClock, unix_now
from relay_service.domain.entities.message import Message
from relay_service.infrastructure.ws.client import Client
from relay_service.infrastructure.ws.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class DefaultHandler:
    """Plain group relay: every broadcast is forwarded to everyone else."""

    name = "default"

    def __init__(self, dispatcher: Dispatcher, clock: Clock | None = None) -> None:
        self._dispatcher = dispatcher
        self._clock = clock or SystemClock()
        self._registered = 0
        self._destroyed = 0
        self._broadcasts = 0
        self._custom = 0
        self._last_heartbeat: dict[str, int] = {}

    async def init(self) -> None:
        logger.info("Default handler ready")

    async def close(self) -> None:
        self._last_heartbeat.clear()

    async def on_register(self, client: Client) -> None:
        self._registered += 1
        logger.info("Client %s joined", client.id)

    async def on_destroy(self, client: Client) -> None:
        self._destroyed += 1
        self._last_heartbeat.pop(client.id, None)
        logger.info("Client %s left", client.id)

    async def on_heartbeat(self, message: Message, client: Client) -> None:
        self._last_heartbeat[client.id] = unix_now(self._clock)

    async def on_broadcast(self, message: Message, client: Client) -> None:
        self._broadcasts += 1
        await self._dispatcher.broadcast(
            replace(message, id=client.id, sent_at=unix_now(self._clock))
        )

    async def on_default(self, message_type: int, message: Message, client: Client) -> None:
        self._custom += 1
        logger.debug("Ignoring message type %d from %s", message_type, client.id)

    def status(self) -> dict[str, Any]:
        stats = self._dispatcher.stats
        return {
            "handler": self.name,
            "connected": self._dispatcher.count,
            "registered": self._registered,
            "destroyed": self._destroyed,
            "broadcasts": self._broadcasts,
            "custom_messages": self._custom,
            "delivered": stats.delivered,
            "delivery_failures": stats.failed,
        }
