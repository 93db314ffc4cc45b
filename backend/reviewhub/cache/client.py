"""
Valkey client implementation with health checks and automatic reconnection.

This module provides a Valkey client wrapper with connection pooling,
health monitoring, and automatic recovery from connection failures.
"""

import asyncio
import logging
import time
from typing import Optional, Any

import valkey
from valkey.connection import ConnectionPool
from valkey.exceptions import ConnectionError, TimeoutError

from .config import ValkeyConfig, ValkeyConnectionError

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Valkey client with health checks and automatic reconnection.

    Features:
    - Connection pooling with configurable pool size
    - Automatic health checks and reconnection
    - Exponential backoff between connection attempts

    A pre-built client object exposing the valkey command API can be passed
    as ``client``; the wrapper then skips pool creation and uses it as-is.
    """

    def __init__(self, config: Optional[ValkeyConfig] = None, client: Optional[Any] = None):
        """
        Initialize Valkey client with configuration.

        Args:
            config: ValkeyConfig instance, defaults to environment-based config
            client: Optional ready-made client (shared pool, test double)
        """
        self.config = config or ValkeyConfig.from_env()
        self._client: Optional[Any] = client
        self._owns_client = client is None
        self._connection_pool: Optional[ConnectionPool] = None
        self._is_connected = False
        self._last_health_check = 0.0
        self._connection_attempts = 0
        self._max_connection_attempts = 5
        self._reconnect_delay = 0.5
        self._max_reconnect_delay = 10.0

        logger.info(f"Initializing Valkey client: {self.config}")

    async def connect(self) -> None:
        """
        Establish connection to Valkey server with retry logic.

        Raises:
            ValkeyConnectionError: If connection cannot be established after max attempts
        """
        if self._is_connected and self._client is not None:
            return

        self._connection_attempts = 0

        while self._connection_attempts < self._max_connection_attempts:
            try:
                self._connection_attempts += 1
                logger.info(f"Attempting Valkey connection (attempt {self._connection_attempts})")

                if self._owns_client:
                    self._connection_pool = ConnectionPool(**self.config.to_connection_pool_kwargs())
                    self._client = valkey.Valkey(connection_pool=self._connection_pool)

                await self._test_connection()

                self._is_connected = True
                self._connection_attempts = 0
                self._last_health_check = time.time()

                logger.info("Successfully connected to Valkey server")
                return

            except (ConnectionError, TimeoutError, OSError, ValkeyConnectionError) as e:
                logger.warning(
                    f"Valkey connection attempt {self._connection_attempts} failed: {e}"
                )

                if self._connection_attempts >= self._max_connection_attempts:
                    error_msg = (
                        f"Failed to connect to Valkey after {self._max_connection_attempts} attempts. "
                        f"Last error: {e}"
                    )
                    logger.error(error_msg)
                    raise ValkeyConnectionError(error_msg) from e

                delay = min(self._reconnect_delay * (2 ** (self._connection_attempts - 1)),
                            self._max_reconnect_delay)
                logger.info(f"Retrying connection in {delay:.1f} seconds...")
                await asyncio.sleep(delay)

    async def disconnect(self) -> None:
        """Gracefully disconnect from Valkey server."""
        if self._connection_pool:
            try:
                self._connection_pool.disconnect()
                logger.info("Disconnected from Valkey server")
            except Exception as e:
                logger.warning(f"Error during Valkey disconnect: {e}")
            finally:
                self._connection_pool = None
                self._client = None
        self._is_connected = False

    async def _test_connection(self) -> None:
        """
        Test Valkey connection with a simple ping.

        Raises:
            ValkeyConnectionError: If ping fails
        """
        if self._client is None:
            raise ValkeyConnectionError("Client not initialized")

        try:
            result = self._client.ping()
        except (ConnectionError, TimeoutError, OSError) as e:
            raise ValkeyConnectionError(f"Connection test failed: {e}") from e
        if not result:
            raise ValkeyConnectionError("Ping returned False")

    async def health_check(self, force: bool = False) -> bool:
        """
        Perform health check on Valkey connection.

        Args:
            force: Force health check even if recently performed

        Returns:
            bool: True if connection is healthy, False otherwise
        """
        current_time = time.time()

        if not force and (current_time - self._last_health_check) < self.config.health_check_interval:
            return self._is_connected

        self._last_health_check = current_time

        if self._client is None or not self._is_connected:
            logger.debug("Health check failed: not connected")
            return False

        try:
            await self._test_connection()
            logger.debug("Health check passed")
            return True
        except ValkeyConnectionError as e:
            logger.warning(f"Health check failed: {e}")
            self._is_connected = False
            return False

    async def ensure_connection(self) -> None:
        """
        Ensure connection is available, reconnect if necessary.

        Raises:
            ValkeyConnectionError: If connection cannot be established
        """
        if not await self.health_check():
            logger.info("Connection unhealthy, attempting reconnection...")
            self._is_connected = False
            await self.connect()

    @property
    def client(self) -> Any:
        """
        Get the underlying Valkey client.

        Raises:
            ValkeyConnectionError: If client is not connected
        """
        if self._client is None or not self._is_connected:
            raise ValkeyConnectionError("Client not connected. Call connect() first.")
        return self._client

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()
