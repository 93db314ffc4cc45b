"""
Cache envelope models.
"""

from datetime import datetime
from typing import Generic, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class LogicalExpiryEnvelope(BaseModel, Generic[T]):
    """
    Payload plus the time after which it counts as stale.

    Stored without a physical TTL. Parameterize with the payload type to
    decode in one pass, e.g. ``LogicalExpiryEnvelope[ShopModel]``.
    """

    data: T
    expire_time: datetime = Field(..., description="Logical expiration timestamp")

    def is_expired(self, now: datetime) -> bool:
        return self.expire_time <= now
