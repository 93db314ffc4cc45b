"""
Enums shared by the services and their result models.
"""

from enum import Enum


class SeckillStatus(str, Enum):
    """Outcome of one seckill request."""
    SUCCESS = "success"
    VOUCHER_NOT_FOUND = "voucher_not_found"
    SALE_NOT_STARTED = "sale_not_started"
    SALE_ENDED = "sale_ended"
    OUT_OF_STOCK = "out_of_stock"
    DUPLICATE_PURCHASE = "duplicate_purchase"
    SERVICE_UNAVAILABLE = "service_unavailable"


class QueryStrategy(str, Enum):
    """How a cache miss on an entity read is resolved."""
    PASS_THROUGH = "pass_through"      # cache-aside with null caching
    MUTEX = "mutex"                    # single rebuilder behind a lock
    LOGICAL_EXPIRE = "logical_expire"  # serve stale, rebuild in background
