"""
Seckill voucher and order models.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import SeckillStatus


class VoucherModel(BaseModel):
    """Seckill voucher with its sale window and remaining stock."""
    model_config = ConfigDict(from_attributes=True)

    voucher_id: int = Field(..., ge=1)
    stock: int = Field(..., ge=0, description="Remaining stock")
    begin_time: datetime = Field(..., description="Sale start")
    end_time: datetime = Field(..., description="Sale end")

    def is_started(self, now: datetime) -> bool:
        return self.begin_time <= now

    def is_ended(self, now: datetime) -> bool:
        return self.end_time < now


class VoucherOrderModel(BaseModel):
    """A created order."""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Generated order id")
    user_id: int
    voucher_id: int
    create_time: Optional[datetime] = None


class SeckillResult(BaseModel):
    """Typed result of a seckill request."""

    status: SeckillStatus
    voucher_id: int
    user_id: int
    order_id: Optional[int] = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status == SeckillStatus.SUCCESS
