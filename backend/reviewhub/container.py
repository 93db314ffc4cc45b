"""
Service wiring and lifecycle.

Builds the cache, store and service objects from configuration, starts the
rebuild workers, and tears everything down in reverse order.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from .cache.client import ValkeyClient
from .cache.config import ValkeyConfig
from .cache.manager import CacheManager
from .database.config import DatabaseConfig
from .services.blog_service import BlogService
from .services.cache_client import CacheAsideClient
from .services.id_generator import RedisIdWorker
from .services.lock_manager import DistributedLockManager
from .services.rebuild_executor import RebuildExecutor
from .services.seckill import SeckillService
from .services.shop_service import ShopService
from .utils.config import ReviewHubSettings, load_settings

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Owns one instance of every service.

    Usage:
        async with ServiceContainer.build() as services:
            result = await services.seckill.seckill_voucher(1, 42)
    """

    def __init__(
        self,
        settings: ReviewHubSettings,
        cache_manager: CacheManager,
        db_config: DatabaseConfig,
        clock: Optional[Callable[[], datetime]] = None,
        id_clock: Optional[Callable[[], datetime]] = None
    ):
        self.settings = settings
        self.cache = cache_manager
        self.db = db_config

        self.locks = DistributedLockManager(
            cache_manager,
            default_lock_ttl=settings.lock_shop_ttl,
            retry_delay=settings.lock_retry_delay
        )
        self.id_worker = RedisIdWorker(
            cache_manager,
            begin_timestamp=settings.id_begin_timestamp,
            clock=id_clock
        )
        self.rebuild_executor = RebuildExecutor(
            pool_size=settings.rebuild_pool_size,
            queue_size=settings.rebuild_queue_size
        )
        self.cache_client = CacheAsideClient(
            cache_manager, self.locks, self.rebuild_executor, settings=settings, clock=clock
        )
        self.shops = ShopService(db_config, cache_manager, self.cache_client)
        self.seckill = SeckillService(db_config, self.locks, self.id_worker, settings=settings, clock=clock)
        self.blogs = BlogService(db_config, cache_manager)

        self._started = False

    @classmethod
    def build(
        cls,
        settings: Optional[ReviewHubSettings] = None,
        valkey_config: Optional[ValkeyConfig] = None,
        database_url: Optional[str] = None,
        valkey_client: Optional[Any] = None,
        **kwargs
    ) -> "ServiceContainer":
        """
        Create a container from environment configuration.

        Args:
            settings: Tunables; loaded from the environment when omitted
            valkey_config: Valkey connection settings
            database_url: Store URL override
            valkey_client: Ready-made valkey client to use instead of a pool
        """
        settings = settings or load_settings()
        cache_manager = CacheManager(ValkeyClient(valkey_config, client=valkey_client))
        db_config = DatabaseConfig(database_url)
        return cls(settings, cache_manager, db_config, **kwargs)

    async def start(self) -> None:
        """Connect to Valkey and the store and start the rebuild workers."""
        if self._started:
            return

        await self.cache.initialize()
        self.db.initialize()
        self.db.create_tables()
        await self.rebuild_executor.start()

        self._started = True
        logger.info("Service container started")

    async def stop(self) -> None:
        """Stop workers, then close connections."""
        if not self._started:
            return

        await self.rebuild_executor.stop()
        await self.cache.close()
        self.db.close()

        self._started = False
        logger.info("Service container stopped")

    async def __aenter__(self) -> "ServiceContainer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
