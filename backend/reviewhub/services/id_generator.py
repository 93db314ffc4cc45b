"""
Globally unique, time-ordered 64-bit ids.

An id is ``(seconds since epoch start) << 32 | sequence`` where the
sequence comes from a per-prefix, per-day INCR counter in Valkey.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..cache.manager import CacheManager
from ..cache.utils import key_manager, TTLPreset
from ..utils.config import DEFAULT_BEGIN_TIMESTAMP

logger = logging.getLogger(__name__)

COUNT_BITS = 32
MAX_SEQUENCE = (1 << COUNT_BITS) - 1


class SequenceOverflowError(Exception):
    """Raised when an id cannot be produced without breaking ordering or uniqueness."""
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RedisIdWorker:
    """
    Id generator shared by every instance that points at the same Valkey.

    Ids from the same second and prefix are strictly increasing; ids from
    later seconds are always larger. Counter keys expire two days after the
    first id of their day.
    """

    def __init__(
        self,
        cache_manager: CacheManager,
        begin_timestamp: int = DEFAULT_BEGIN_TIMESTAMP,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.cache = cache_manager
        self.begin_timestamp = begin_timestamp
        self.clock = clock or _utc_now

    async def next_id(self, key_prefix: str) -> int:
        """
        Generate the next id for ``key_prefix``.

        Raises:
            SequenceOverflowError: clock before the epoch, or more than
                2**32 - 1 ids for this prefix today
            CacheUnavailableError: the counter could not be incremented
        """
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now = now.astimezone(timezone.utc)

        elapsed = int(now.timestamp()) - self.begin_timestamp
        if elapsed < 0:
            raise SequenceOverflowError(
                f"Clock {now.isoformat()} is before id epoch {self.begin_timestamp}"
            )

        counter_key = key_manager.id_counter_key(key_prefix, now.date())
        sequence = await self.cache.increment(counter_key)
        if sequence == 1:
            await self.cache.expire(counter_key, int(TTLPreset.ID_COUNTER))

        if sequence > MAX_SEQUENCE:
            logger.error(f"Id sequence exhausted for {counter_key}: {sequence}")
            raise SequenceOverflowError(f"Daily sequence for '{key_prefix}' exceeded {MAX_SEQUENCE}")

        return (elapsed << COUNT_BITS) | sequence

    @staticmethod
    def split_id(value: int) -> tuple:
        """Decompose an id into ``(elapsed_seconds, sequence)``."""
        return value >> COUNT_BITS, value & MAX_SEQUENCE
