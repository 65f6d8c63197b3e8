from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from relay_service.api.deps import DispatcherDep, HandlersDep

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(dispatcher: DispatcherDep) -> JSONResponse:
    if not dispatcher.running:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": ["dispatcher: not running"]},
        )
    return JSONResponse(content={"status": "ready"})


@router.get("/status")
async def status(handlers: HandlersDep) -> dict[str, Any]:
    return handlers.current.status()
