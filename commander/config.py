# commander/config.py
"""
Ops Commander configuration
---------------------------
Everything is environment driven (the Deployment injects POD_NAMESPACE and
HOSTNAME through the downward API). A local ``.env`` is honoured for development.

Settings are loaded once at process start and handed to the components that
need them; nothing reads os.environ after startup.
"""

from __future__ import annotations

import os
import logging
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

LOG = logging.getLogger("commander.config")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Process-wide settings. Durations are seconds unless the name says otherwise."""
    namespace: str = Field("ops-commander", description="Namespace the fleet runs in")
    pod_name: str = Field("unknown", description="Local pod identity")
    label_selector: str = Field("app=commander-api", description="Role selector for the fleet")

    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)
    sync_port: int = Field(8080, ge=1, le=65535)
    sync_path: str = "/api/sync"
    sync_timeout: float = 5.0

    burn_ms: int = 50
    burn_period_ms: int = 20
    safety_seconds: float = 300.0

    heartbeat_interval: float = 15.0
    observer_queue_size: int = 100

    watch_backoff: float = 5.0
    watch_timeout_seconds: int = 300
    watch_read_timeout: float = 5.0

    log_level: str = "INFO"
    log_json: bool = True
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("namespace", "label_selector")
    @classmethod
    def must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("sync_timeout", "safety_seconds", "heartbeat_interval", "watch_backoff", "watch_read_timeout")
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("burn_ms", "burn_period_ms", "observer_queue_size", "watch_timeout_seconds")
    @classmethod
    def must_be_positive_int(cls, v):
        if v <= 0:
            raise ValueError("must be > 0")
        return v


def load_settings() -> Settings:
    """Build Settings from the environment (after loading .env if present)."""
    load_dotenv()
    settings = Settings(
        namespace=os.getenv("POD_NAMESPACE", "ops-commander"),
        pod_name=os.getenv("HOSTNAME", "unknown"),
        label_selector=os.getenv("COMMANDER_LABEL_SELECTOR", "app=commander-api"),
        host=os.getenv("COMMANDER_HOST", "0.0.0.0"),
        port=int(os.getenv("COMMANDER_PORT", "8080")),
        sync_port=int(os.getenv("COMMANDER_SYNC_PORT", "8080")),
        sync_timeout=float(os.getenv("COMMANDER_SYNC_TIMEOUT", "5.0")),
        burn_ms=int(os.getenv("COMMANDER_BURN_MS", "50")),
        burn_period_ms=int(os.getenv("COMMANDER_BURN_PERIOD_MS", "20")),
        safety_seconds=float(os.getenv("COMMANDER_SAFETY_SECONDS", "300")),
        heartbeat_interval=float(os.getenv("COMMANDER_HEARTBEAT_INTERVAL", "15")),
        observer_queue_size=int(os.getenv("COMMANDER_OBSERVER_QUEUE", "100")),
        watch_backoff=float(os.getenv("COMMANDER_WATCH_BACKOFF", "5.0")),
        watch_timeout_seconds=int(os.getenv("COMMANDER_WATCH_TIMEOUT", "300")),
        watch_read_timeout=float(os.getenv("COMMANDER_WATCH_READ_TIMEOUT", "5.0")),
        log_level=os.getenv("COMMANDER_LOG_LEVEL", "INFO").upper(),
        log_json=_env_bool("COMMANDER_LOG_JSON", True),
        cors_allow_origins=[o.strip() for o in os.getenv("COMMANDER_CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()],
    )
    LOG.debug("Settings loaded: namespace=%s selector=%s", settings.namespace, settings.label_selector)
    return settings
