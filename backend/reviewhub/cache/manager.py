"""
Cache manager with error handling and a circuit breaker.

This module provides the key-value operations used by the services
(strings, counters, conditional set, Lua scripts, sorted sets) on top of
``ValkeyClient``, with statistics collection and a circuit breaker.
Backend failures surface as ``CacheUnavailableError`` so each caller can
decide whether to degrade (read paths) or propagate (locks, id counters).
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union
from datetime import datetime
from dataclasses import dataclass, field

from valkey.exceptions import ConnectionError, TimeoutError, ResponseError

from .client import ValkeyClient
from .config import ValkeyConfig, ValkeyConnectionError, CacheUnavailableError
from .utils import TTLCalculator, TTLPreset

logger = logging.getLogger(__name__)

# Errors that mean "the cache cannot answer right now"
BACKEND_ERRORS = (ConnectionError, TimeoutError, ResponseError, ValkeyConnectionError, OSError)


@dataclass
class CacheStats:
    """Cache operation statistics."""

    hit_count: int = 0
    miss_count: int = 0
    error_count: int = 0
    set_count: int = 0
    delete_count: int = 0
    total_operations: int = 0

    total_response_time_ms: float = 0.0
    max_response_time_ms: float = 0.0

    connection_errors: int = 0
    timeout_errors: int = 0
    other_errors: int = 0

    rejected_operations: int = 0

    start_time: datetime = field(default_factory=datetime.now)

    @property
    def hit_ratio(self) -> float:
        """Calculate cache hit ratio."""
        total_reads = self.hit_count + self.miss_count
        return self.hit_count / total_reads if total_reads > 0 else 0.0

    @property
    def error_ratio(self) -> float:
        """Calculate error ratio."""
        return self.error_count / self.total_operations if self.total_operations > 0 else 0.0

    @property
    def avg_response_time_ms(self) -> float:
        """Calculate average response time."""
        return (self.total_response_time_ms / self.total_operations
                if self.total_operations > 0 else 0.0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "error_count": self.error_count,
            "set_count": self.set_count,
            "delete_count": self.delete_count,
            "total_operations": self.total_operations,
            "hit_ratio": self.hit_ratio,
            "error_ratio": self.error_ratio,
            "avg_response_time_ms": self.avg_response_time_ms,
            "max_response_time_ms": self.max_response_time_ms,
            "connection_errors": self.connection_errors,
            "timeout_errors": self.timeout_errors,
            "other_errors": self.other_errors,
            "rejected_operations": self.rejected_operations,
            "uptime_seconds": (datetime.now() - self.start_time).total_seconds(),
        }


class CacheManager:
    """
    High-level cache operations with error handling.

    Features:
    - Uniform translation of backend errors into CacheUnavailableError
    - Circuit breaker that short-circuits calls after repeated failures
    - Operation statistics (hits, misses, errors, latency)
    - TTL jitter for entity writes
    """

    def __init__(
        self,
        client: Optional[ValkeyClient] = None,
        config: Optional[ValkeyConfig] = None,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_timeout: int = 30
    ):
        """
        Initialize cache manager.

        Args:
            client: ValkeyClient instance
            config: ValkeyConfig for creating a new client when none is given
            circuit_breaker_threshold: Consecutive failures before circuit opens
            circuit_breaker_timeout: Seconds to wait before retrying after circuit opens
        """
        self.client = client or ValkeyClient(config)
        self.ttl_calculator = TTLCalculator()

        self.stats = CacheStats()

        self.circuit_breaker_threshold = circuit_breaker_threshold
        self.circuit_breaker_timeout = circuit_breaker_timeout
        self.consecutive_failures = 0
        self.circuit_open_time: Optional[datetime] = None
        self.is_circuit_open = False

        logger.info("CacheManager initialized")

    async def initialize(self) -> None:
        """Establish the Valkey connection."""
        await self.client.connect()
        logger.info("CacheManager successfully connected to Valkey")

    def _record_operation(self, operation_type: str, response_time_ms: float) -> None:
        """Record operation statistics."""
        self.stats.total_operations += 1
        self.stats.total_response_time_ms += response_time_ms

        if response_time_ms > self.stats.max_response_time_ms:
            self.stats.max_response_time_ms = response_time_ms

        if operation_type == "set":
            self.stats.set_count += 1
        elif operation_type == "delete":
            self.stats.delete_count += 1

    def _record_error(self, error: Exception) -> None:
        """Record and categorize errors."""
        self.stats.error_count += 1
        self.consecutive_failures += 1

        if isinstance(error, (ConnectionError, ValkeyConnectionError)):
            self.stats.connection_errors += 1
        elif isinstance(error, TimeoutError):
            self.stats.timeout_errors += 1
        else:
            self.stats.other_errors += 1

        if self.consecutive_failures >= self.circuit_breaker_threshold and not self.is_circuit_open:
            self.is_circuit_open = True
            self.circuit_open_time = datetime.now()
            logger.warning(
                f"Circuit breaker opened after {self.consecutive_failures} consecutive failures"
            )

    def _record_success(self) -> None:
        """Record successful operation."""
        self.consecutive_failures = 0

        if self.is_circuit_open:
            self.is_circuit_open = False
            self.circuit_open_time = None
            logger.info("Circuit breaker closed after successful operation")

    def _is_circuit_breaker_open(self) -> bool:
        """Check if circuit breaker should remain open."""
        if not self.is_circuit_open or self.circuit_open_time is None:
            return False

        elapsed = (datetime.now() - self.circuit_open_time).total_seconds()
        if elapsed >= self.circuit_breaker_timeout:
            logger.info("Circuit breaker timeout expired, allowing retry")
            return False

        return True

    async def _execute(self, operation_type: str, key: Optional[str], command: Callable[[Any], Any]) -> Any:
        """
        Run one command against the raw client.

        Args:
            operation_type: Short operation name for stats and errors
            key: Key the command touches (for error context)
            command: Callable receiving the raw valkey client

        Raises:
            CacheUnavailableError: circuit open or backend failure
        """
        if self._is_circuit_breaker_open():
            self.stats.rejected_operations += 1
            raise CacheUnavailableError("Circuit breaker is open", operation_type, key)

        start_time = time.time()
        try:
            await self.client.ensure_connection()
            result = command(self.client.client)
        except BACKEND_ERRORS as e:
            logger.warning(f"Cache {operation_type} failed for key {key}: {e}")
            self._record_error(e)
            raise CacheUnavailableError(f"Cache {operation_type} failed: {e}", operation_type, key) from e

        self._record_success()
        self._record_operation(operation_type, (time.time() - start_time) * 1000)
        return result

    @staticmethod
    def _decode(value: Any) -> Any:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def get(self, key: str) -> Optional[str]:
        """
        Get a string value.

        Returns:
            The stored string (possibly empty) or None when the key is absent
        """
        result = await self._execute("get", key, lambda c: c.get(key))
        if result is None:
            self.stats.miss_count += 1
            return None
        self.stats.hit_count += 1
        return self._decode(result)

    async def set(
        self,
        key: str,
        value: str,
        ttl: Optional[Union[int, TTLPreset]] = None,
        jitter: bool = False
    ) -> bool:
        """
        Set a string value with optional TTL.

        Args:
            key: Cache key
            value: Serialized value
            ttl: Time to live in seconds or TTLPreset; None stores without expiry
            jitter: Spread the TTL by +/-10%
        """
        final_ttl = None
        if ttl is not None:
            final_ttl = int(ttl)
            if jitter:
                final_ttl = self.ttl_calculator.calculate_ttl_with_jitter(final_ttl)

        if final_ttl:
            result = await self._execute("set", key, lambda c: c.setex(key, final_ttl, value))
        else:
            result = await self._execute("set", key, lambda c: c.set(key, value))
        return bool(result)

    async def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        """SET key value NX PX ttl_ms. True when this call created the key."""
        result = await self._execute(
            "set_if_absent", key, lambda c: c.set(key, value, nx=True, px=ttl_ms)
        )
        return bool(result)

    async def delete(self, key: str) -> bool:
        """Delete a key. True if a key was removed."""
        result = await self._execute("delete", key, lambda c: c.delete(key))
        return bool(result)

    async def exists(self, key: str) -> bool:
        """Check whether a key exists."""
        result = await self._execute("exists", key, lambda c: c.exists(key))
        return bool(result)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a TTL on an existing key."""
        result = await self._execute("expire", key, lambda c: c.expire(key, int(ttl_seconds)))
        return bool(result)

    async def get_ttl(self, key: str) -> Optional[int]:
        """Remaining TTL in seconds, None if the key is missing or persistent."""
        result = await self._execute("ttl", key, lambda c: c.ttl(key))
        return result if result is not None and result > 0 else None

    async def increment(self, key: str, amount: int = 1) -> int:
        """Atomic INCRBY; creates the key at 0 first if absent."""
        result = await self._execute("increment", key, lambda c: c.incr(key, amount))
        return int(result)

    async def eval_script(self, script: str, keys: List[str], args: List[Any]) -> Any:
        """Run a Lua script atomically on the server."""
        key = keys[0] if keys else None
        return await self._execute("eval", key, lambda c: c.eval(script, len(keys), *keys, *args))

    async def zadd(self, key: str, member: str, score: float) -> int:
        """Add a member to a sorted set (or update its score)."""
        result = await self._execute("zadd", key, lambda c: c.zadd(key, {member: score}))
        return int(result or 0)

    async def zrem(self, key: str, member: str) -> int:
        """Remove a member from a sorted set."""
        result = await self._execute("zrem", key, lambda c: c.zrem(key, member))
        return int(result or 0)

    async def zrange(self, key: str, start: int, end: int) -> List[str]:
        """Members by ascending score, inclusive range."""
        result = await self._execute("zrange", key, lambda c: c.zrange(key, start, end))
        return [self._decode(member) for member in result or []]

    async def zscore(self, key: str, member: str) -> Optional[float]:
        """Score of a member, None if it is not in the set."""
        result = await self._execute("zscore", key, lambda c: c.zscore(key, member))
        return float(result) if result is not None else None

    async def get_stats(self) -> Dict[str, Any]:
        """
        Get cache manager statistics.

        Returns:
            Dict containing performance and error statistics
        """
        stats = self.stats.to_dict()
        stats.update({
            "circuit_breaker_open": self.is_circuit_open,
            "consecutive_failures": self.consecutive_failures,
        })
        return stats

    async def health_check(self) -> Dict[str, Any]:
        """
        Round-trip a health-check key.

        Returns:
            Dict containing health status and diagnostics
        """
        health = {
            "status": "unknown",
            "cache_available": False,
            "circuit_breaker_open": self.is_circuit_open,
            "errors": [],
        }

        test_key = "health_check_test"
        test_value = datetime.now().isoformat()
        try:
            await self.set(test_key, test_value, ttl=60)
            retrieved = await self.get(test_key)
            await self.delete(test_key)
        except CacheUnavailableError as e:
            health.update({"status": "unhealthy", "errors": [str(e)]})
            return health

        if retrieved == test_value:
            health.update({"status": "healthy", "cache_available": True})
        else:
            health.update({
                "status": "degraded",
                "errors": ["Cache round-trip returned unexpected value"],
            })
        return health

    async def close(self) -> None:
        """Close the underlying connection."""
        await self.client.disconnect()
        logger.info("CacheManager closed")
