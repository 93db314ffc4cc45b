"""
Shop lookups and updates on top of the cache-aside read strategies.
"""

import logging
from typing import Optional, Union

from ..cache.manager import CacheManager
from ..cache.config import CacheUnavailableError
from ..cache.utils import CacheKeyPrefix, key_manager
from ..database.config import DatabaseConfig
from ..database.repositories import ShopRepository
from ..models.enums import QueryStrategy
from ..models.shop import ShopModel
from .cache_client import CacheAsideClient

logger = logging.getLogger(__name__)


class ShopService:
    """Shop reads go through the cache; writes go to the store, then invalidate."""

    def __init__(self, db_config: DatabaseConfig, cache_manager: CacheManager, cache_client: CacheAsideClient):
        self.db = db_config
        self.cache = cache_manager
        self.cache_client = cache_client

    async def load_from_store(self, shop_id: int) -> Optional[ShopModel]:
        """Authoritative shop read."""
        with self.db.get_session_context() as session:
            return ShopRepository.get_by_id(session, shop_id)

    async def query_by_id(
        self,
        shop_id: int,
        strategy: Union[QueryStrategy, str] = QueryStrategy.PASS_THROUGH
    ) -> Optional[ShopModel]:
        """
        Look up a shop using the given miss-handling strategy.

        Returns:
            ShopModel, or None when the shop does not exist (or, for
            logical expiration, was never warmed)
        """
        strategy = QueryStrategy(strategy)

        if strategy == QueryStrategy.MUTEX:
            query = self.cache_client.query_with_mutex
        elif strategy == QueryStrategy.LOGICAL_EXPIRE:
            query = self.cache_client.query_with_logical_expire
        else:
            query = self.cache_client.query_with_pass_through

        return await query(CacheKeyPrefix.SHOP, shop_id, ShopModel, self.load_from_store)

    async def update(self, shop: ShopModel) -> bool:
        """
        Write the shop to the store, then drop its cache entry.

        Returns:
            False if no shop with that id exists

        Raises:
            ValueError: the shop has no id
            StoreUnavailableError: the store write failed
        """
        if shop.id is None:
            raise ValueError("Shop id must not be empty")

        with self.db.get_session_context() as session:
            updated = ShopRepository.update_by_id(session, shop)

        if not updated:
            return False

        key = key_manager.shop_key(shop.id)
        try:
            await self.cache.delete(key)
        except CacheUnavailableError as e:
            # The entry ages out on its TTL
            logger.warning(f"Shop {shop.id} updated but {key} was not invalidated: {e}")

        logger.info(f"Shop {shop.id} updated")
        return True

    async def warm_up(self, shop_id: int, expire_seconds: Optional[int] = None) -> bool:
        """
        Pre-load a hot shop as a logical-expiry entry.

        Returns:
            False if the shop does not exist
        """
        shop = await self.load_from_store(shop_id)
        if shop is None:
            logger.warning(f"Cannot warm up missing shop {shop_id}")
            return False

        await self.cache_client.set_with_logical_expire(key_manager.shop_key(shop_id), shop, expire_seconds)
        logger.info(f"Warmed up shop {shop_id}")
        return True
