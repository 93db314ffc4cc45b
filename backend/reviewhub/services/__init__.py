"""
Services for cache reads, locking, id generation and order sequencing.
"""

from .lock_manager import DistributedLockManager, LockInfo, LockMetrics
from .id_generator import RedisIdWorker, SequenceOverflowError
from .rebuild_executor import RebuildExecutor
from .cache_client import CacheAsideClient, CacheAsideStats, TOMBSTONE
from .shop_service import ShopService
from .seckill import SeckillService
from .blog_service import BlogService

__all__ = [
    "DistributedLockManager",
    "LockInfo",
    "LockMetrics",
    "RedisIdWorker",
    "SequenceOverflowError",
    "RebuildExecutor",
    "CacheAsideClient",
    "CacheAsideStats",
    "TOMBSTONE",
    "ShopService",
    "SeckillService",
    "BlogService",
]
