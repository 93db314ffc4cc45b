"""
Valkey cache configuration and cache-side exceptions.

This module provides the configuration class for Valkey connections,
including environment variable support and connection pool parameters,
plus the exception types raised by the cache layer.
"""

import os
import logging
from typing import Optional, Dict, Any
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class ValkeyConfig:
    """
    Configuration class for Valkey connections with environment variable support.

    Supports connection pooling, retry logic, and environment-specific parameters.
    """

    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    database: int = 0
    max_connections: int = 50
    socket_timeout: float = 2.0
    socket_connect_timeout: float = 2.0
    retry_on_timeout: bool = True
    health_check_interval: int = 30
    decode_responses: bool = True

    @classmethod
    def from_env(cls) -> "ValkeyConfig":
        """
        Create ValkeyConfig from environment variables.

        Returns:
            ValkeyConfig: Configuration instance with values from environment
        """
        return cls(
            host=os.getenv("VALKEY_HOST", "localhost"),
            port=int(os.getenv("VALKEY_PORT", "6379")),
            password=os.getenv("VALKEY_PASSWORD") or None,
            database=int(os.getenv("VALKEY_DATABASE", "0")),
            max_connections=int(os.getenv("VALKEY_MAX_CONNECTIONS", "50")),
            socket_timeout=float(os.getenv("VALKEY_SOCKET_TIMEOUT", "2.0")),
            socket_connect_timeout=float(os.getenv("VALKEY_SOCKET_CONNECT_TIMEOUT", "2.0")),
            retry_on_timeout=os.getenv("VALKEY_RETRY_ON_TIMEOUT", "true").lower() == "true",
            health_check_interval=int(os.getenv("VALKEY_HEALTH_CHECK_INTERVAL", "30")),
            decode_responses=os.getenv("VALKEY_DECODE_RESPONSES", "true").lower() == "true"
        )

    def to_connection_kwargs(self) -> Dict[str, Any]:
        """
        Convert configuration to Valkey connection parameters.

        Returns:
            Dict[str, Any]: Connection parameters for Valkey client
        """
        kwargs = {
            "host": self.host,
            "port": self.port,
            "db": self.database,
            "socket_timeout": self.socket_timeout,
            "socket_connect_timeout": self.socket_connect_timeout,
            "retry_on_timeout": self.retry_on_timeout,
            "decode_responses": self.decode_responses,
        }

        if self.password:
            kwargs["password"] = self.password

        return kwargs

    def to_connection_pool_kwargs(self) -> Dict[str, Any]:
        """Connection kwargs plus the pool size."""
        kwargs = self.to_connection_kwargs()
        kwargs["max_connections"] = self.max_connections
        return kwargs

    def __str__(self) -> str:
        """String representation hiding sensitive information."""
        password_display = "***" if self.password else "None"
        return (
            f"ValkeyConfig(host={self.host}, port={self.port}, "
            f"db={self.database}, password={password_display}, "
            f"max_connections={self.max_connections})"
        )


class ValkeyConnectionError(Exception):
    """Raised when a connection to Valkey cannot be established."""
    pass


class CacheUnavailableError(Exception):
    """
    Raised by cache operations when the backend cannot serve the request.

    Read paths catch this and degrade to the authoritative store; the lock
    manager and the ID generator let it propagate.
    """

    def __init__(self, message: str, operation: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.operation = operation
        self.key = key
