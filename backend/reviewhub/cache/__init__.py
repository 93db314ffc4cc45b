"""
Caching layer for reviewhub.

This module contains the Valkey client configuration, the cache manager
and key / TTL conventions.
"""

from .config import ValkeyConfig, ValkeyConnectionError, CacheUnavailableError
from .client import ValkeyClient
from .utils import (
    CacheKeyPrefix,
    TTLPreset,
    CacheKeyBuilder,
    TTLCalculator,
    CacheKeyManager,
    key_manager
)
from .manager import CacheManager, CacheStats

__all__ = [
    # Configuration
    "ValkeyConfig",
    "ValkeyConnectionError",
    "CacheUnavailableError",

    # Client
    "ValkeyClient",

    # Manager
    "CacheManager",
    "CacheStats",

    # Utilities
    "CacheKeyPrefix",
    "TTLPreset",
    "CacheKeyBuilder",
    "TTLCalculator",
    "CacheKeyManager",
    "key_manager",
]
