"""
Shop models.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class ShopModel(BaseModel):
    """
    Shop listing as cached and returned by the read paths.
    """
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = Field(None, ge=1, description="Shop id")
    name: str = Field(..., description="Shop name")
    type_id: int = Field(..., description="Shop category id")
    images: Optional[str] = Field(None, description="Comma separated image urls")
    area: Optional[str] = Field(None, description="Business district")
    address: str = Field(..., description="Street address")
    x: Optional[float] = Field(None, description="Longitude")
    y: Optional[float] = Field(None, description="Latitude")
    avg_price: Optional[int] = Field(None, ge=0, description="Average spend per person")
    sold: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    score: int = Field(default=0, ge=0, le=50, description="Rating x10")
    open_hours: Optional[str] = Field(None, description="e.g. 10:00-22:00")
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
