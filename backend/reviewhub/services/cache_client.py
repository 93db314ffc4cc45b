"""
Cache-aside read strategies for entity lookups.

Three ways to resolve a lookup against Valkey with the SQL store as the
source of truth:

- pass-through: cache-aside with an empty-string tombstone for ids the
  store does not have, so repeated lookups of missing ids stay off the store
- mutex: on a miss exactly one caller rebuilds behind a distributed lock;
  the others wait for its value
- logical expiration: entries never expire physically; a stale entry is
  served immediately while a single background rebuild refreshes it

Values are pydantic models serialized as JSON. A Valkey outage degrades
every strategy to a direct store read.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from ..cache.config import CacheUnavailableError
from ..cache.manager import CacheManager
from ..cache.utils import CacheKeyBuilder, CacheKeyPrefix
from ..models.cache import LogicalExpiryEnvelope
from ..utils.config import ReviewHubSettings
from .lock_manager import DistributedLockManager, LockInfo
from .rebuild_executor import RebuildExecutor

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
Loader = Callable[[Any], Awaitable[Optional[T]]]

# Cached marker for "the store has no such record"
TOMBSTONE = ""


@dataclass
class CacheAsideStats:
    """Counters describing how lookups were resolved."""
    cache_hits: int = 0
    tombstone_hits: int = 0
    store_loads: int = 0
    degraded_reads: int = 0
    mutex_waits: int = 0
    mutex_timeouts: int = 0
    stale_served: int = 0
    rebuilds_submitted: int = 0
    rebuilds_rejected: int = 0

    def to_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


class CacheAsideClient:
    """
    Entity read paths with penetration, breakdown and avalanche protection.

    Keys are ``<key_prefix>:<id>``; rebuild locks are ``lock:<kind>:<id>``
    where ``kind`` is the last segment of the prefix (``cache:shop`` ->
    ``shop``).
    """

    def __init__(
        self,
        cache_manager: CacheManager,
        lock_manager: DistributedLockManager,
        rebuild_executor: RebuildExecutor,
        settings: Optional[ReviewHubSettings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.cache = cache_manager
        self.locks = lock_manager
        self.executor = rebuild_executor
        self.settings = settings or ReviewHubSettings()
        self.clock = clock or datetime.now
        self.stats = CacheAsideStats()

    # Keys

    @staticmethod
    def _key(key_prefix: Union[CacheKeyPrefix, str], entity_id: Any) -> str:
        return CacheKeyBuilder.build_key(key_prefix, entity_id)

    @staticmethod
    def _lock_resource(key_prefix: Union[CacheKeyPrefix, str], entity_id: Any) -> str:
        prefix = key_prefix.value if isinstance(key_prefix, CacheKeyPrefix) else str(key_prefix)
        kind = prefix.rsplit(":", 1)[-1]
        return CacheKeyBuilder.build_key(kind, entity_id)

    # Writes

    async def set(self, key: str, value: BaseModel, ttl: Optional[int] = None, jitter: bool = False) -> bool:
        """Store a value as JSON with a physical TTL."""
        return await self.cache.set(key, value.model_dump_json(), ttl=ttl, jitter=jitter)

    async def set_with_logical_expire(self, key: str, value: BaseModel, expire_seconds: Optional[int] = None) -> bool:
        """
        Store a value wrapped with a logical expiration time and no physical TTL.

        Raises:
            CacheUnavailableError: the write did not reach Valkey
        """
        window = expire_seconds if expire_seconds is not None else self.settings.logical_expire_seconds
        envelope = LogicalExpiryEnvelope[type(value)](
            data=value,
            expire_time=self.clock() + timedelta(seconds=window)
        )
        return await self.cache.set(key, envelope.model_dump_json())

    async def _write_through(self, key: str, value: Optional[BaseModel], ttl: Optional[int]) -> None:
        """Cache a loaded value or a tombstone; failures only cost a future miss."""
        try:
            if value is None:
                await self.cache.set(key, TOMBSTONE, ttl=self.settings.cache_null_ttl)
            else:
                await self.set(key, value, ttl=ttl or self.settings.cache_shop_ttl, jitter=ttl is None)
        except CacheUnavailableError as e:
            logger.warning(f"Cache write skipped for {key}: {e}")

    # Reads

    async def _read(self, key: str, model_type: Type[T]) -> Tuple[bool, Optional[T]]:
        """
        Returns:
            (True, value) on a hit, (True, None) on a tombstone,
            (False, None) on a miss
        """
        raw = await self.cache.get(key)
        if raw is None:
            return False, None
        if raw == TOMBSTONE:
            self.stats.tombstone_hits += 1
            return True, None

        try:
            value = model_type.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return False, None

        self.stats.cache_hits += 1
        return True, value

    async def _load(self, loader: Loader, entity_id: Any) -> Optional[T]:
        self.stats.store_loads += 1
        return await loader(entity_id)

    async def _degrade(self, key: str, error: CacheUnavailableError, loader: Loader, entity_id: Any) -> Optional[T]:
        logger.warning(f"Cache unavailable for {key}, reading store directly: {error}")
        self.stats.degraded_reads += 1
        return await self._load(loader, entity_id)

    async def _release_quietly(self, lock: LockInfo) -> None:
        try:
            await self.locks.release_lock(lock)
        except CacheUnavailableError as e:
            # TTL reclaims the lock
            logger.warning(f"Could not release {lock.lock_key}: {e}")

    async def query_with_pass_through(
        self,
        key_prefix: Union[CacheKeyPrefix, str],
        entity_id: Any,
        model_type: Type[T],
        loader: Loader,
        ttl: Optional[int] = None
    ) -> Optional[T]:
        """
        Cache-aside lookup with null caching.

        Args:
            key_prefix: Key prefix, e.g. CacheKeyPrefix.SHOP
            entity_id: Entity id
            model_type: Pydantic model to decode into
            loader: Async store lookup returning the model or None
            ttl: Entity TTL in seconds; defaults to the jittered shop TTL

        Returns:
            The entity, or None if the store does not have it

        Raises:
            StoreUnavailableError: the loader could not reach the store
        """
        key = self._key(key_prefix, entity_id)

        try:
            found, value = await self._read(key, model_type)
        except CacheUnavailableError as e:
            return await self._degrade(key, e, loader, entity_id)

        if found:
            return value

        value = await self._load(loader, entity_id)
        await self._write_through(key, value, ttl)
        return value

    async def query_with_mutex(
        self,
        key_prefix: Union[CacheKeyPrefix, str],
        entity_id: Any,
        model_type: Type[T],
        loader: Loader,
        ttl: Optional[int] = None
    ) -> Optional[T]:
        """
        Cache-aside lookup where only the lock holder rebuilds a miss.

        Callers that do not get the lock poll the cache until the wait
        budget runs out, then read the cache one last time and return
        None if it is still empty. They never load from the store.
        """
        key = self._key(key_prefix, entity_id)
        resource = self._lock_resource(key_prefix, entity_id)

        try:
            found, value = await self._read(key, model_type)
            if found:
                return value
            lock = await self._wait_for_lock_or_value(key, resource, model_type)
        except CacheUnavailableError as e:
            return await self._degrade(key, e, loader, entity_id)

        if not isinstance(lock, LockInfo):
            return lock

        try:
            found, value = await self._read(key, model_type)
            if found:
                return value

            value = await self._load(loader, entity_id)
            await self._write_through(key, value, ttl)
            logger.debug(f"Rebuilt {key} under {lock.lock_key}")
            return value
        except CacheUnavailableError as e:
            return await self._degrade(key, e, loader, entity_id)
        finally:
            await self._release_quietly(lock)

    async def _wait_for_lock_or_value(
        self,
        key: str,
        resource: str,
        model_type: Type[T]
    ) -> Union[LockInfo, T, None]:
        """Poll for the rebuild lock, returning early if a value shows up."""
        deadline = time.monotonic() + self.settings.mutex_wait_timeout
        retry_delay = self.settings.lock_retry_delay
        waited = False

        while True:
            lock = await self.locks.try_acquire(resource, self.settings.lock_shop_ttl)
            if lock:
                return lock

            if not waited:
                waited = True
                self.stats.mutex_waits += 1

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break

            await asyncio.sleep(min(retry_delay, remaining))
            found, value = await self._read(key, model_type)
            if found:
                return value

        self.stats.mutex_timeouts += 1
        logger.warning(f"Timed out waiting for rebuild of {key}")
        found, value = await self._read(key, model_type)
        return value if found else None

    async def query_with_logical_expire(
        self,
        key_prefix: Union[CacheKeyPrefix, str],
        entity_id: Any,
        model_type: Type[T],
        loader: Loader,
        expire_seconds: Optional[int] = None
    ) -> Optional[T]:
        """
        Serve-stale lookup for pre-warmed hot keys.

        Never waits on a rebuild: fresh entries are returned as-is, and an
        expired entry is returned while one caller schedules a background
        refresh. Keys that were never warmed return None.
        """
        key = self._key(key_prefix, entity_id)
        envelope_type = LogicalExpiryEnvelope[model_type]

        try:
            raw = await self.cache.get(key)
        except CacheUnavailableError as e:
            return await self._degrade(key, e, loader, entity_id)

        if not raw:
            return None

        try:
            envelope = envelope_type.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable envelope {key}: {e}")
            return None

        if not envelope.is_expired(self.clock()):
            self.stats.cache_hits += 1
            return envelope.data

        self.stats.stale_served += 1
        resource = self._lock_resource(key_prefix, entity_id)
        try:
            lock = await self.locks.try_acquire(resource, self.settings.lock_shop_ttl)
        except CacheUnavailableError as e:
            logger.warning(f"Skipping refresh of {key}: {e}")
            return envelope.data

        if not lock:
            return envelope.data

        try:
            # Another caller may have refreshed between our read and the lock
            current = await self.cache.get(key)
            if current:
                refreshed = envelope_type.model_validate_json(current)
                if not refreshed.is_expired(self.clock()):
                    await self._release_quietly(lock)
                    return refreshed.data
        except (CacheUnavailableError, ValidationError) as e:
            logger.warning(f"Freshness re-check failed for {key}: {e}")

        async def rebuild() -> None:
            await self._rebuild(key, entity_id, loader, expire_seconds, lock)

        async def release() -> None:
            await self._release_quietly(lock)

        if self.executor.submit(rebuild, name=key, on_discard=release):
            self.stats.rebuilds_submitted += 1
        else:
            self.stats.rebuilds_rejected += 1
            await self._release_quietly(lock)

        return envelope.data

    async def _rebuild(
        self,
        key: str,
        entity_id: Any,
        loader: Loader,
        expire_seconds: Optional[int],
        lock: LockInfo
    ) -> None:
        try:
            value = await self._load(loader, entity_id)
            if value is None:
                await self.cache.delete(key)
                logger.info(f"Entity behind {key} is gone, envelope removed")
            else:
                await self.set_with_logical_expire(key, value, expire_seconds)
                logger.debug(f"Refreshed {key}")
        finally:
            await self._release_quietly(lock)
