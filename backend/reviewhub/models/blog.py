"""
Blog and user summary models.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class UserSummaryModel(BaseModel):
    """Public user fields shown next to blogs and likes."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    nick_name: str
    icon: Optional[str] = None


class BlogModel(BaseModel):
    """Blog post with author info and the viewer's like flag."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    shop_id: int
    user_id: int
    title: str
    content: str
    liked: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    create_time: Optional[datetime] = None

    # Filled in by the blog service, not stored on the row
    name: Optional[str] = None
    icon: Optional[str] = None
    is_like: bool = False
