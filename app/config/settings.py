# app/config/settings.py

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True
    )

    # Application Configuration
    APP_NAME: str = "RapidEats Realtime"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # JWT Authentication Configuration (shared with the HTTP API that issues tokens)
    SECRET_KEY: str = "CHANGE-THIS-SECRET-KEY-IN-PRODUCTION-USE-ENV-FILE"  # Must be changed in .env file!
    JWT_ALGORITHM: str = "HS256"
    AUTH_COOKIE_NAME: str = "rapideats_auth"

    # CORS - the single frontend origin allowed to open sockets
    FRONTEND_URL: str = "http://localhost:3000"

    # Socket.IO transport keepalive
    SOCKETIO_PING_TIMEOUT: int = 60
    SOCKETIO_PING_INTERVAL: int = 25

    # Presence tracking
    HEARTBEAT_INTERVAL_SECONDS: float = 30
    STATS_LOG_INTERVAL_SECONDS: float = 60
    # "replace": newest socket wins, older one stays open (multi-device)
    # "evict": older socket for the same actor is disconnected from the namespace
    DUPLICATE_CONNECTION_POLICY: Literal["replace", "evict"] = "replace"


settings = Settings()
