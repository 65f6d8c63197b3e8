from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class MessageType(IntEnum):
    SYSTEM = 0
    BROADCAST = 1
    HEARTBEAT = 2
    CONNECTED = 3
    DISCONNECTED = 4
    BREAK = 5  # never written as an envelope, becomes a close frame
    REGISTER = 6

    @classmethod
    def parse(cls, raw: int) -> MessageType | CustomMessageType:
        """Map a wire value onto a reserved type or a custom extension type."""
        try:
            return cls(raw)
        except ValueError:
            return CustomMessageType(raw)


@dataclass(frozen=True, slots=True)
class CustomMessageType:
    """Consumer-defined type outside the reserved range."""

    value: int
