"""Inbound message entrypoint: decode an envelope and route it by type."""
from __future__ import annotations

import logging

from relay_service.application.ports.handler import EventHandler
from relay_service.domain.entities.message import Message
from relay_service.domain.value_objects.enums import MessageType
from relay_service.infrastructure.ws.client import Client
from relay_service.infrastructure.ws.protocol import decode_message

logger = logging.getLogger(__name__)


async def dispatch_request(client: Client, raw: str | bytes, handler: EventHandler) -> Message:
    """Raises ``MalformedEnvelopeError`` if ``raw`` is not a valid envelope."""
    logger.debug("Inbound from %s: %s", client.id, raw)
    message = decode_message(raw)

    kind = MessageType.parse(message.type)
    if kind in (MessageType.BROADCAST, MessageType.SYSTEM):
        await handler.on_broadcast(message, client)
    elif kind is MessageType.HEARTBEAT:
        await handler.on_heartbeat(message, client)
    else:
        await handler.on_default(message.type, message, client)
    return message
