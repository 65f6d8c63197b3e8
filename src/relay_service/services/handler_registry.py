from __future__ import annotations

import asyncio
import logging

from relay_service.application.exceptions import HandlerNotInstalledError
from relay_service.application.ports.handler import EventHandler

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Holds the single active business handler.

    Built at start-up and passed to whatever needs the handler, instead of
    a module-level global.
    """

    def __init__(self) -> None:
        self._handler: EventHandler | None = None
        self._lock = asyncio.Lock()

    @property
    def current(self) -> EventHandler:
        if self._handler is None:
            raise HandlerNotInstalledError("no event handler installed")
        return self._handler

    @property
    def installed(self) -> bool:
        return self._handler is not None

    async def install(self, handler: EventHandler) -> None:
        """Close the previous handler, then init and activate ``handler``."""
        async with self._lock:
            previous = self._handler
            if previous is not None:
                await previous.close()
                logger.info("Event handler %s closed", type(previous).__name__)
            self._handler = handler
            await handler.init()
            logger.info("Event handler %s installed", type(handler).__name__)

    async def close(self) -> None:
        async with self._lock:
            if self._handler is not None:
                await self._handler.close()
                self._handler = None
