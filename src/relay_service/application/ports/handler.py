from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from relay_service.domain.entities.message import Message

if TYPE_CHECKING:
    from relay_service.infrastructure.ws.client import Client


class EventHandler(Protocol):
    """Business logic plugged into the relay.

    Only one handler is active at a time, see ``HandlerRegistry``.
    """

    async def on_register(self, client: Client) -> None: ...

    async def on_destroy(self, client: Client) -> None: ...

    async def on_heartbeat(self, message: Message, client: Client) -> None: ...

    async def on_broadcast(self, message: Message, client: Client) -> None: ...

    async def on_default(self, message_type: int, message: Message, client: Client) -> None: ...

    async def init(self) -> None: ...

    async def close(self) -> None: ...

    def status(self) -> dict[str, Any]: ...
