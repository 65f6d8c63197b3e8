from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "info"

    CORS_ORIGINS: list[str] = ["*"]

    WS_HEARTBEAT_SECONDS: float = 30
    WS_SEND_TIMEOUT_SECONDS: float = 5.0

    DISPATCHER_QUEUE_CAPACITY: int = 1000
    DISPATCHER_SHUTDOWN_MODE: Literal["drain", "immediate"] = "drain"

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
