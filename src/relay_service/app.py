from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from relay_service.api.v1.routers import health, ws
from relay_service.application.exceptions import HandlerNotInstalledError
from relay_service.config import settings
from relay_service.infrastructure.ws.dispatcher import Dispatcher
from relay_service.services.default_handler import DefaultHandler
from relay_service.services.handler_registry import HandlerRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    dispatcher = Dispatcher(
        settings.DISPATCHER_QUEUE_CAPACITY,
        shutdown_mode=settings.DISPATCHER_SHUTDOWN_MODE,
    )
    dispatcher.start()
    app.state.dispatcher = dispatcher

    handlers = HandlerRegistry()
    await handlers.install(DefaultHandler(dispatcher))
    app.state.handlers = handlers

    yield

    await handlers.close()
    await dispatcher.shutdown()
    await dispatcher.wait_closed()
    logger.info("Relay stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Relay Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HandlerNotInstalledError)
    async def _no_handler(_req: Request, exc: HandlerNotInstalledError) -> JSONResponse:
        return JSONResponse(status_code=503, content={"detail": exc.detail})
