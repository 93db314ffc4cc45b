"""
Distributed lock manager backed by Valkey.

Locks are plain keys written with ``SET key token NX PX ttl``. Each
acquisition gets its own token, and release/extension run as Lua scripts
that act only when the stored token still matches, so a holder whose lock
expired and was re-acquired elsewhere cannot release the new holder's lock.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List
from dataclasses import dataclass
from contextlib import asynccontextmanager

from ..cache.manager import CacheManager
from ..cache.utils import key_manager

logger = logging.getLogger(__name__)

RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

EXTEND_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("pexpire", KEYS[1], ARGV[2])
else
    return 0
end
"""


@dataclass
class LockInfo:
    """Information about a held distributed lock."""
    lock_key: str
    lock_value: str
    acquired_at: datetime
    expires_at: datetime
    ttl_seconds: float
    owner_id: str

    @property
    def is_expired(self) -> bool:
        """Check if lock has expired."""
        return datetime.now() > self.expires_at

    @property
    def remaining_ttl_seconds(self) -> float:
        """Get remaining TTL in seconds."""
        remaining = (self.expires_at - datetime.now()).total_seconds()
        return max(0.0, remaining)

    def to_dict(self) -> Dict[str, Any]:
        """Convert lock info to dictionary."""
        return {
            "lock_key": self.lock_key,
            "lock_value": self.lock_value,
            "acquired_at": self.acquired_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "ttl_seconds": self.ttl_seconds,
            "owner_id": self.owner_id,
            "is_expired": self.is_expired,
            "remaining_ttl_seconds": self.remaining_ttl_seconds
        }


@dataclass
class LockMetrics:
    """Lock contention counters for this instance."""
    acquired: int = 0
    failed: int = 0
    released: int = 0
    release_mismatches: int = 0
    total_wait_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        attempts = self.acquired + self.failed
        return {
            "acquired": self.acquired,
            "failed": self.failed,
            "released": self.released,
            "release_mismatches": self.release_mismatches,
            "success_rate": self.acquired / attempts if attempts else 0.0,
            "avg_wait_time_ms": self.total_wait_time_ms / attempts if attempts else 0.0,
        }


class DistributedLockManager:
    """
    Distributed lock manager using Valkey SET with NX and PX options.

    Features:
    - Atomic acquisition with TTL (self-heals if the holder dies)
    - Per-acquisition token; token-checked release and extension
    - Blocking-with-timeout and non-blocking acquisition
    - Contention metrics

    Backend failures are not swallowed: CacheUnavailableError propagates
    to the caller.
    """

    def __init__(
        self,
        cache_manager: CacheManager,
        default_lock_ttl: float = 10.0,
        retry_delay: float = 0.05
    ):
        """
        Initialize distributed lock manager.

        Args:
            cache_manager: CacheManager instance for lock operations
            default_lock_ttl: TTL in seconds when none is given
            retry_delay: Pause between attempts while waiting
        """
        self.cache = cache_manager
        self.instance_id = str(uuid.uuid4())[:8]
        self.active_locks: Dict[str, LockInfo] = {}
        self.metrics = LockMetrics()

        self.default_lock_ttl = default_lock_ttl
        self.max_lock_ttl = 300.0
        self.lock_retry_delay = retry_delay

        logger.info(f"DistributedLockManager initialized with instance ID: {self.instance_id}")

    def _new_token(self) -> str:
        return f"{self.instance_id}:{uuid.uuid4()}"

    async def acquire_lock(
        self,
        resource_key: str,
        ttl_seconds: Optional[float] = None,
        timeout_seconds: float = 0.0,
        retry_delay: Optional[float] = None
    ) -> Optional[LockInfo]:
        """
        Acquire a distributed lock for the given resource.

        At least one attempt is always made; with ``timeout_seconds=0`` that
        single attempt is the whole call.

        Args:
            resource_key: Resource identifier to lock (e.g. "shop:1")
            ttl_seconds: Lock TTL in seconds
            timeout_seconds: Maximum time to wait for the lock
            retry_delay: Delay between attempts

        Returns:
            LockInfo if acquired, None on timeout
        """
        ttl = min(ttl_seconds or self.default_lock_ttl, self.max_lock_ttl)
        retry_delay = retry_delay or self.lock_retry_delay

        lock_key = key_manager.lock_key(resource_key)
        lock_value = self._new_token()
        ttl_ms = max(1, int(ttl * 1000))

        start_time = time.monotonic()
        deadline = start_time + max(0.0, timeout_seconds)
        attempts = 0

        while True:
            attempts += 1
            if await self.cache.set_if_absent(lock_key, lock_value, ttl_ms):
                acquired_at = datetime.now()
                lock_info = LockInfo(
                    lock_key=lock_key,
                    lock_value=lock_value,
                    acquired_at=acquired_at,
                    expires_at=acquired_at + timedelta(seconds=ttl),
                    ttl_seconds=ttl,
                    owner_id=self.instance_id
                )
                self.active_locks[lock_value] = lock_info

                wait_time_ms = (time.monotonic() - start_time) * 1000
                self.metrics.acquired += 1
                self.metrics.total_wait_time_ms += wait_time_ms
                logger.debug(f"Lock acquired: {lock_key} (attempts: {attempts}, wait: {wait_time_ms:.1f}ms)")
                return lock_info

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            await asyncio.sleep(min(retry_delay, remaining))

        wait_time_ms = (time.monotonic() - start_time) * 1000
        self.metrics.failed += 1
        self.metrics.total_wait_time_ms += wait_time_ms
        logger.debug(f"Lock not acquired: {lock_key} (attempts: {attempts}, wait: {wait_time_ms:.1f}ms)")
        return None

    async def try_acquire(self, resource_key: str, ttl_seconds: Optional[float] = None) -> Optional[LockInfo]:
        """Single non-blocking acquisition attempt."""
        return await self.acquire_lock(resource_key, ttl_seconds, timeout_seconds=0.0)

    async def release_lock(self, lock_info: LockInfo) -> bool:
        """
        Release a lock if this acquisition still owns it.

        Returns:
            True if the key was deleted, False if it expired or belongs to
            another holder
        """
        result = await self.cache.eval_script(
            RELEASE_SCRIPT,
            [lock_info.lock_key],
            [lock_info.lock_value]
        )
        self.active_locks.pop(lock_info.lock_value, None)

        success = bool(result)
        if success:
            self.metrics.released += 1
            logger.debug(f"Lock released: {lock_info.lock_key}")
        else:
            self.metrics.release_mismatches += 1
            logger.warning(f"Lock release skipped (expired or not owner): {lock_info.lock_key}")

        return success

    async def extend_lock(self, lock_info: LockInfo, ttl_seconds: float) -> bool:
        """
        Reset the TTL of a lock this acquisition still owns.

        Args:
            lock_info: Lock information from acquire_lock
            ttl_seconds: New TTL measured from now

        Returns:
            True if the lock was extended
        """
        new_ttl = min(ttl_seconds, self.max_lock_ttl)
        result = await self.cache.eval_script(
            EXTEND_SCRIPT,
            [lock_info.lock_key],
            [lock_info.lock_value, max(1, int(new_ttl * 1000))]
        )

        if result:
            lock_info.ttl_seconds = new_ttl
            lock_info.expires_at = datetime.now() + timedelta(seconds=new_ttl)
            logger.debug(f"Lock extended: {lock_info.lock_key} (new TTL: {new_ttl}s)")
            return True

        logger.warning(f"Lock extension failed (expired or not owner): {lock_info.lock_key}")
        return False

    @asynccontextmanager
    async def lock_context(
        self,
        resource_key: str,
        ttl_seconds: Optional[float] = None,
        timeout_seconds: float = 0.0
    ):
        """
        Acquire on entry, release on exit.

        Usage:
            async with lock_manager.lock_context("shop:1") as lock:
                if lock:
                    # Lock acquired, perform protected operation
                    pass
                else:
                    # Lock not acquired, handle appropriately
                    pass
        """
        lock_info = await self.acquire_lock(resource_key, ttl_seconds, timeout_seconds)

        try:
            yield lock_info
        finally:
            if lock_info:
                await self.release_lock(lock_info)

    async def get_lock_status(self, resource_key: str) -> Optional[Dict[str, Any]]:
        """
        Get status of a lock for the given resource.

        Returns:
            Lock status information or None if no lock exists
        """
        lock_key = key_manager.lock_key(resource_key)

        lock_value = await self.cache.get(lock_key)
        if lock_value is None:
            return None

        ttl = await self.cache.get_ttl(lock_key)
        owner_id = lock_value.split(':')[0]

        return {
            "lock_key": lock_key,
            "lock_value": lock_value,
            "owner_id": owner_id,
            "is_owned_by_us": owner_id == self.instance_id,
            "ttl_seconds": ttl or 0,
            "exists": True
        }

    def get_active_locks(self) -> List[Dict[str, Any]]:
        """Locks this instance currently believes it holds."""
        return [lock.to_dict() for lock in self.active_locks.values()]

    def get_lock_metrics(self) -> Dict[str, Any]:
        """Contention metrics for this instance."""
        metrics = self.metrics.to_dict()
        metrics["active_locks"] = len(self.active_locks)
        return metrics

