from __future__ import annotations

from typing import Any, Protocol


class Connection(Protocol):
    """Full-duplex message transport owned by a single client.

    ``starlette.websockets.WebSocket`` satisfies this protocol as is.
    """

    async def accept(self) -> None: ...

    async def receive(self) -> dict[str, Any]: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...
