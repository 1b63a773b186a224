"""
Process configuration read from the environment.

Entry points call Settings.from_env() once and pass the result (or the
clients built from it) into each component.
"""

from __future__ import annotations

import os

from pydantic import BaseModel, ConfigDict, Field

from broker.config import QUEUE_FULFILLMENT, RABBIT_URL


class Settings(BaseModel):
    """Runtime settings for the services and the fulfillment worker."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    db_path: str = "/data/orders.db"
    rabbit_url: str = RABBIT_URL
    fulfillment_queue: str = QUEUE_FULFILLMENT
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_seconds: int = Field(3600, gt=0)
    notification_url: str = "http://localhost:8003"
    notification_timeout_ms: int = Field(2000, gt=0)
    poll_interval_seconds: float = Field(10.0, ge=0)
    batch_size: int = Field(10, ge=1, le=10)
    wait_seconds: int = Field(20, ge=0, le=20)
    visibility_timeout_seconds: int = Field(30, gt=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables, falling back to defaults."""
        env = os.environ
        values = {
            "db_path": env.get("DB_PATH"),
            "rabbit_url": env.get("RABBIT_URL"),
            "fulfillment_queue": env.get("FULFILLMENT_QUEUE"),
            "redis_url": env.get("REDIS_URL"),
            "cache_ttl_seconds": env.get("REDIS_CACHE_EXPIRATION"),
            "notification_url": env.get("NOTIFICATION_URL"),
            "notification_timeout_ms": env.get("NOTIFICATION_TIMEOUT_MS"),
            "poll_interval_seconds": env.get("WORKER_POLL_INTERVAL"),
            "batch_size": env.get("WORKER_BATCH_SIZE"),
            "wait_seconds": env.get("WORKER_WAIT_SECONDS"),
            "visibility_timeout_seconds": env.get("QUEUE_VISIBILITY_TIMEOUT"),
            "log_level": env.get("LOG_LEVEL"),
        }
        return cls.model_validate({k: v for k, v in values.items() if v is not None})
