"""
Pydantic v2 models used for cache serialization and service results.
"""

from .enums import SeckillStatus, QueryStrategy
from .shop import ShopModel
from .voucher import VoucherModel, VoucherOrderModel, SeckillResult
from .blog import BlogModel, UserSummaryModel
from .cache import LogicalExpiryEnvelope

__all__ = [
    # Enums
    "SeckillStatus",
    "QueryStrategy",

    # Entities
    "ShopModel",
    "VoucherModel",
    "VoucherOrderModel",
    "BlogModel",
    "UserSummaryModel",

    # Results and envelopes
    "SeckillResult",
    "LogicalExpiryEnvelope",
]
