"""
Store accessors for the services.

Each repository method works inside a session scope opened by the caller
(``DatabaseConfig.get_session_context``), so a service decides where its
transaction starts and ends. Methods return pydantic models or row counts,
never live ORM objects.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .models import Blog, SeckillVoucher, Shop, User, VoucherOrder
from ..models.shop import ShopModel
from ..models.voucher import VoucherModel, VoucherOrderModel
from ..models.blog import BlogModel, UserSummaryModel

logger = logging.getLogger(__name__)


class ShopRepository:
    """Shop reads and writes."""

    @staticmethod
    def get_by_id(session: Session, shop_id: int) -> Optional[ShopModel]:
        shop = session.get(Shop, shop_id)
        return ShopModel.model_validate(shop) if shop else None

    @staticmethod
    def update_by_id(session: Session, shop: ShopModel) -> int:
        """
        Overwrite the mutable columns of a shop.

        Returns:
            Number of rows updated (0 when the id does not exist)
        """
        values: Dict[str, Any] = shop.model_dump(exclude={"id", "create_time", "update_time"})
        result = session.execute(
            update(Shop).where(Shop.id == shop.id).values(**values)
        )
        return result.rowcount


class VoucherRepository:
    """Seckill voucher stock and order rows."""

    @staticmethod
    def get_by_id(session: Session, voucher_id: int) -> Optional[VoucherModel]:
        voucher = session.get(SeckillVoucher, voucher_id)
        return VoucherModel.model_validate(voucher) if voucher else None

    @staticmethod
    def conditional_decrement_stock(session: Session, voucher_id: int) -> int:
        """
        ``UPDATE ... SET stock = stock - 1 WHERE voucher_id = ? AND stock > 0``.

        Returns:
            Affected rows; 0 means sold out
        """
        result = session.execute(
            update(SeckillVoucher)
            .where(SeckillVoucher.voucher_id == voucher_id, SeckillVoucher.stock > 0)
            .values(stock=SeckillVoucher.stock - 1)
        )
        return result.rowcount

    @staticmethod
    def count_orders(session: Session, user_id: int, voucher_id: int) -> int:
        return session.scalar(
            select(func.count())
            .select_from(VoucherOrder)
            .where(VoucherOrder.user_id == user_id, VoucherOrder.voucher_id == voucher_id)
        ) or 0

    @staticmethod
    def insert_order(session: Session, order: VoucherOrderModel) -> None:
        """Insert and flush so constraint violations surface inside the scope."""
        session.add(VoucherOrder(id=order.id, user_id=order.user_id, voucher_id=order.voucher_id))
        session.flush()

    @staticmethod
    def list_orders(session: Session, voucher_id: int) -> List[VoucherOrderModel]:
        rows = session.scalars(
            select(VoucherOrder).where(VoucherOrder.voucher_id == voucher_id).order_by(VoucherOrder.id)
        ).all()
        return [VoucherOrderModel.model_validate(row) for row in rows]


class BlogRepository:
    """Blog rows and their like counter."""

    @staticmethod
    def get_by_id(session: Session, blog_id: int) -> Optional[BlogModel]:
        blog = session.get(Blog, blog_id)
        return BlogModel.model_validate(blog) if blog else None

    @staticmethod
    def increment_liked(session: Session, blog_id: int) -> bool:
        result = session.execute(
            update(Blog).where(Blog.id == blog_id).values(liked=Blog.liked + 1)
        )
        return result.rowcount > 0

    @staticmethod
    def decrement_liked(session: Session, blog_id: int) -> bool:
        result = session.execute(
            update(Blog).where(Blog.id == blog_id, Blog.liked > 0).values(liked=Blog.liked - 1)
        )
        return result.rowcount > 0


class UserRepository:
    """User lookups."""

    @staticmethod
    def get_by_id(session: Session, user_id: int) -> Optional[UserSummaryModel]:
        user = session.get(User, user_id)
        return UserSummaryModel.model_validate(user) if user else None

    @staticmethod
    def list_by_ids(session: Session, user_ids: List[int]) -> List[UserSummaryModel]:
        """Users in the order of ``user_ids``; unknown ids are skipped."""
        if not user_ids:
            return []
        rows = session.scalars(select(User).where(User.id.in_(user_ids))).all()
        by_id = {row.id: row for row in rows}
        return [UserSummaryModel.model_validate(by_id[uid]) for uid in user_ids if uid in by_id]
