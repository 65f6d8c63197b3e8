"""Per-client keep-alive probe."""
from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from relay_service.application.exceptions import ConnectionSendError
from relay_service.domain.value_objects.enums import MessageType

if TYPE_CHECKING:
    from relay_service.infrastructure.ws.client import Client

logger = logging.getLogger(__name__)

HEARTBEAT_CONTENT = "heart beat"


class HeartbeatState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


class HeartbeatMonitor:
    """Sends a HEARTBEAT message every ``interval`` seconds until cancelled.

    Cancellation is the owning client's ``cancelled`` event; the monitor
    waits on it between ticks, so it stops as soon as the event is set.
    """

    def __init__(self, client: Client, interval: float) -> None:
        if interval <= 0:
            raise ValueError("heartbeat interval must be positive")
        self._client = client
        self._interval = interval
        self._task: asyncio.Task[None] | None = None
        self.state = HeartbeatState.IDLE
        self.ticks = 0

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("heartbeat monitor already started")
        self._task = asyncio.create_task(self._run(), name=f"relay-heartbeat-{self._client.id}")
        self.state = HeartbeatState.RUNNING

    def stop(self) -> None:
        self._client.cancel()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        cancelled = self._client.cancelled
        try:
            while not cancelled.is_set():
                try:
                    await asyncio.wait_for(cancelled.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
                if cancelled.is_set():
                    break
                self.ticks += 1
                try:
                    await self._client.send_message(MessageType.HEARTBEAT, HEARTBEAT_CONTENT)
                except ConnectionSendError:
                    # The client has already closed itself; the loop ends on the signal.
                    logger.debug("Heartbeat to %s failed", self._client.id)
        finally:
            self.state = HeartbeatState.CANCELLED
            logger.debug("Heartbeat monitor for %s stopped", self._client.id)
