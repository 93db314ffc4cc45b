"""
Environment configuration loader with validation.
"""

import logging
import os
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator
from dotenv import load_dotenv

from ..cache.utils import TTLPreset

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# 2025-02-22T00:00:00Z
DEFAULT_BEGIN_TIMESTAMP = 1740182400


class ReviewHubSettings(BaseModel):
    """Deployment-time tunables for caching, locking and id generation."""

    # Cache TTL windows (seconds)
    cache_null_ttl: int = Field(default=int(TTLPreset.CACHE_NULL), ge=1, description="Tombstone TTL")
    cache_shop_ttl: int = Field(default=int(TTLPreset.CACHE_SHOP), ge=1, description="Shop entry TTL")
    logical_expire_seconds: int = Field(
        default=int(TTLPreset.LOGICAL_EXPIRE), ge=1, description="Logical expiration window"
    )

    # Locks (seconds)
    lock_shop_ttl: float = Field(default=float(TTLPreset.LOCK_SHOP), gt=0, description="Rebuild lock TTL")
    lock_order_ttl: float = Field(default=float(TTLPreset.LOCK_ORDER), gt=0, description="Per-user order lock TTL")
    order_lock_timeout: float = Field(default=1.2, ge=0, description="Seckill lock wait budget")
    mutex_wait_timeout: float = Field(default=2.0, ge=0, description="Mutex rebuild wait budget")
    lock_retry_delay: float = Field(default=0.05, gt=0, description="Delay between lock attempts")

    # Background rebuilds
    rebuild_pool_size: int = Field(default=10, ge=1, description="Concurrent rebuild workers")
    rebuild_queue_size: int = Field(default=100, ge=1, description="Pending rebuild jobs")

    # Id generation
    id_begin_timestamp: int = Field(default=DEFAULT_BEGIN_TIMESTAMP, ge=0, description="Id epoch (unix seconds)")

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {VALID_LOG_LEVELS}")
        return v.upper()

    @model_validator(mode="after")
    def validate_lock_budgets(self) -> "ReviewHubSettings":
        """A caller must not wait longer for a lock than the lock can live."""
        if self.order_lock_timeout > self.lock_order_ttl:
            raise ValueError("ORDER_LOCK_TIMEOUT must not exceed LOCK_ORDER_TTL")
        return self


def load_settings(env_file: Optional[str] = None) -> ReviewHubSettings:
    """
    Load settings from environment variables and an optional .env file.

    Args:
        env_file: Path to .env file. Defaults to ".env" in the working directory.

    Raises:
        ValueError: If a value is missing or invalid
    """
    if env_file is None:
        env_file = ".env"

    if os.path.exists(env_file):
        load_dotenv(env_file)

    config_data: Dict[str, Any] = {
        "cache_null_ttl": int(os.getenv("CACHE_NULL_TTL", str(int(TTLPreset.CACHE_NULL)))),
        "cache_shop_ttl": int(os.getenv("CACHE_SHOP_TTL", str(int(TTLPreset.CACHE_SHOP)))),
        "logical_expire_seconds": int(
            os.getenv("LOGICAL_EXPIRE_SECONDS", str(int(TTLPreset.LOGICAL_EXPIRE)))
        ),
        "lock_shop_ttl": float(os.getenv("LOCK_SHOP_TTL", str(int(TTLPreset.LOCK_SHOP)))),
        "lock_order_ttl": float(os.getenv("LOCK_ORDER_TTL", str(int(TTLPreset.LOCK_ORDER)))),
        "order_lock_timeout": float(os.getenv("ORDER_LOCK_TIMEOUT", "1.2")),
        "mutex_wait_timeout": float(os.getenv("MUTEX_WAIT_TIMEOUT", "2.0")),
        "lock_retry_delay": float(os.getenv("LOCK_RETRY_DELAY", "0.05")),
        "rebuild_pool_size": int(os.getenv("REBUILD_POOL_SIZE", "10")),
        "rebuild_queue_size": int(os.getenv("REBUILD_QUEUE_SIZE", "100")),
        "id_begin_timestamp": int(os.getenv("ID_BEGIN_TIMESTAMP", str(DEFAULT_BEGIN_TIMESTAMP))),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
    }

    try:
        return ReviewHubSettings(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e


def configure_logging(level: str = "INFO") -> None:
    """Root logging setup for scripts and the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
