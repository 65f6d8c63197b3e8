"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from relay_service.infrastructure.ws.dispatcher import Dispatcher
from relay_service.services.handler_registry import HandlerRegistry


def get_dispatcher(conn: HTTPConnection) -> Dispatcher:
    return conn.app.state.dispatcher


def get_handlers(conn: HTTPConnection) -> HandlerRegistry:
    return conn.app.state.handlers


DispatcherDep = Annotated[Dispatcher, Depends(get_dispatcher)]
HandlersDep = Annotated[HandlerRegistry, Depends(get_handlers)]
