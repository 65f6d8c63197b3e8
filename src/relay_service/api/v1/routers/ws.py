from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from relay_service.api.deps import DispatcherDep, HandlersDep
from relay_service.application.exceptions import DispatcherClosedError, MalformedEnvelopeError
from relay_service.config import settings
from relay_service.domain.value_objects.enums import MessageType
from relay_service.infrastructure.ws.client import Client, new_client
from relay_service.services.dispatch_service import dispatch_request
from relay_service.services.handler_registry import HandlerRegistry

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

CLOSE_TRY_AGAIN_LATER = 1013


@router.websocket("/ws/{client_id}")
async def ws_relay(
    websocket: WebSocket,
    client_id: str,
    dispatcher: DispatcherDep,
    handlers: HandlersDep,
) -> None:
    try:
        client = await new_client(
            client_id,
            websocket,
            dispatcher,
            send_timeout=settings.WS_SEND_TIMEOUT_SECONDS,
        )
    except DispatcherClosedError:
        await websocket.close(code=CLOSE_TRY_AGAIN_LATER, reason="Relay shutting down")
        return

    heartbeat = client.start_heartbeat(settings.WS_HEARTBEAT_SECONDS)
    try:
        await handlers.current.on_register(client)
        await _read_loop(client, handlers)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", client.id)
    finally:
        await client.close()
        await heartbeat.wait()
        if handlers.installed:
            await handlers.current.on_destroy(client)


async def _read_loop(client: Client, handlers: HandlerRegistry) -> None:
    while True:
        raw = await client.read_message()
        try:
            await dispatch_request(client, raw, handlers.current)
        except MalformedEnvelopeError as exc:
            logger.info("Malformed envelope from %s: %s", client.id, exc.detail)
            await client.send_message(MessageType.SYSTEM, "invalid_payload")
