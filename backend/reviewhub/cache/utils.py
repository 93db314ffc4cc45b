"""
Cache utilities for key naming conventions and TTL management.

This module provides utilities for consistent cache key generation
and TTL calculation with jitter.
"""

import random
from datetime import date
from typing import Any, Union
from enum import Enum


class CacheKeyPrefix(str, Enum):
    """Standard cache key prefixes for different data types."""

    # Entity caches
    SHOP = "cache:shop"

    # Mutual exclusion
    LOCK = "lock"

    # Per-day id counters
    ID_COUNTER = "icr"

    # Sorted sets
    BLOG_LIKED = "blog:liked"


class TTLPreset(int, Enum):
    """Standard TTL presets in seconds."""

    CACHE_NULL = 120        # 2 minutes, tombstone for missing ids
    CACHE_SHOP = 1800       # 30 minutes
    LOGICAL_EXPIRE = 20     # logical expiration window
    LOCK_SHOP = 10          # rebuild lock
    LOCK_ORDER = 10         # per-user seckill lock
    ID_COUNTER = 172800     # 2 days, keeps yesterday's counter around


class CacheKeyBuilder:
    """
    Builder class for generating consistent cache keys.

    Keys are colon-joined: prefix, then each non-None part.
    """

    @staticmethod
    def build_key(prefix: Union[CacheKeyPrefix, str], *parts: Any) -> str:
        """
        Build a cache key with prefix and parts.

        Example:
            build_key(CacheKeyPrefix.SHOP, 42)
            # Returns: "cache:shop:42"
        """
        prefix_str = prefix.value if isinstance(prefix, CacheKeyPrefix) else str(prefix)
        key_parts = [prefix_str]

        for part in parts:
            if part is not None:
                key_parts.append(str(part))

        return ":".join(key_parts)

    @staticmethod
    def build_pattern(prefix: Union[CacheKeyPrefix, str], *parts: str) -> str:
        """
        Build a key pattern for SCAN matching.

        Example:
            build_pattern(CacheKeyPrefix.SHOP, "*")
            # Returns: "cache:shop:*"
        """
        prefix_str = prefix.value if isinstance(prefix, CacheKeyPrefix) else str(prefix)
        pattern_parts = [prefix_str]
        pattern_parts.extend(parts)
        return ":".join(pattern_parts)


class TTLCalculator:
    """
    TTL calculation with jitter.

    Spreading expirations keeps a batch of entries written together from
    expiring together.
    """

    @staticmethod
    def calculate_ttl_with_jitter(
        base_ttl: Union[int, TTLPreset],
        jitter_percent: float = 0.1,
        min_ttl: int = 1
    ) -> int:
        """
        Calculate TTL with random jitter.

        Args:
            base_ttl: Base TTL in seconds
            jitter_percent: Jitter as percentage of base TTL (0.0 to 1.0)
            min_ttl: Minimum TTL to ensure

        Returns:
            int: TTL with jitter applied

        Example:
            calculate_ttl_with_jitter(1800, 0.1)  # 1620-1980 seconds
        """
        base_seconds = int(base_ttl)
        jitter_range = int(base_seconds * jitter_percent)

        jitter = random.randint(-jitter_range, jitter_range)
        final_ttl = base_seconds + jitter

        return max(final_ttl, min_ttl)


class CacheKeyManager:
    """Key helpers for every keyspace the services touch."""

    def __init__(self):
        self.key_builder = CacheKeyBuilder()
        self.ttl_calculator = TTLCalculator()

    def shop_key(self, shop_id: Union[str, int]) -> str:
        """Cache key for a shop entity."""
        return self.key_builder.build_key(CacheKeyPrefix.SHOP, shop_id)

    def lock_key(self, resource_key: str) -> str:
        """Lock key for an arbitrary resource."""
        return self.key_builder.build_key(CacheKeyPrefix.LOCK, resource_key)

    def shop_lock_resource(self, shop_id: Union[str, int]) -> str:
        """Lock resource name for rebuilding a shop entry (``shop:<id>``)."""
        return self.key_builder.build_key("shop", shop_id)

    def order_lock_resource(self, user_id: Union[str, int]) -> str:
        """Lock resource name for a user's seckill sequence (``order:<user_id>``)."""
        return self.key_builder.build_key("order", user_id)

    def id_counter_key(self, key_prefix: str, day: date) -> str:
        """Per-day counter key, e.g. ``icr:order:2025:03:01``."""
        return self.key_builder.build_key(
            CacheKeyPrefix.ID_COUNTER,
            key_prefix,
            day.strftime("%Y:%m:%d")
        )

    def blog_liked_key(self, blog_id: Union[str, int]) -> str:
        """Sorted set of users who liked a blog."""
        return self.key_builder.build_key(CacheKeyPrefix.BLOG_LIKED, blog_id)

    def validate_key(self, key: str) -> bool:
        """
        Validate cache key format and length.

        Args:
            key: Cache key to validate

        Returns:
            bool: True if key is valid
        """
        if not key or not isinstance(key, str):
            return False

        if len(key) > 250:
            return False

        invalid_chars = ['\n', '\r', '\t', ' ']
        if any(char in key for char in invalid_chars):
            return False

        return True


# Shared, stateless key helper
key_manager = CacheKeyManager()
