"""
SQLAlchemy database models for reviewhub.

This module defines the rows the services read and write:
- Shop: shop listing, cached by the cache-aside read path
- SeckillVoucher: flash-sale voucher with stock and sale window
- VoucherOrder: one order per (user, voucher)
- Blog: blog post with a like counter
- User: minimal user record for liker summaries
"""

from sqlalchemy import (
    BigInteger, Column, DateTime, Integer, Numeric, String, Text, UniqueConstraint, func
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Shop(Base):
    """Shop listing."""
    __tablename__ = 'tb_shop'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=False)
    type_id = Column(Integer, nullable=False, index=True)
    images = Column(String(1024), nullable=True)
    area = Column(String(128), nullable=True)
    address = Column(String(255), nullable=False)
    x = Column(Numeric(10, 6), nullable=True)  # longitude
    y = Column(Numeric(10, 6), nullable=True)  # latitude
    avg_price = Column(Integer, nullable=True)
    sold = Column(Integer, nullable=False, default=0)
    comments = Column(Integer, nullable=False, default=0)
    score = Column(Integer, nullable=False, default=0)  # rating x10
    open_hours = Column(String(32), nullable=True)
    create_time = Column(DateTime, nullable=False, server_default=func.now())
    update_time = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Shop(id={self.id}, name='{self.name}')>"


class SeckillVoucher(Base):
    """
    Flash-sale voucher.

    ``stock`` only ever changes through a conditional ``stock > 0`` update.
    """
    __tablename__ = 'tb_seckill_voucher'

    voucher_id = Column(Integer, primary_key=True, autoincrement=False)
    stock = Column(Integer, nullable=False)
    begin_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    create_time = Column(DateTime, nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<SeckillVoucher(voucher_id={self.voucher_id}, stock={self.stock})>"


class VoucherOrder(Base):
    """Voucher order; the id comes from the distributed id generator."""
    __tablename__ = 'tb_voucher_order'
    __table_args__ = (
        UniqueConstraint('user_id', 'voucher_id', name='uq_voucher_order_user_voucher'),
    )

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_id = Column(Integer, nullable=False, index=True)
    voucher_id = Column(Integer, nullable=False, index=True)
    create_time = Column(DateTime, nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<VoucherOrder(id={self.id}, user_id={self.user_id}, voucher_id={self.voucher_id})>"


class Blog(Base):
    """Blog post."""
    __tablename__ = 'tb_blog'

    id = Column(Integer, primary_key=True, autoincrement=True)
    shop_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    liked = Column(Integer, nullable=False, default=0)
    comments = Column(Integer, nullable=False, default=0)
    create_time = Column(DateTime, nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Blog(id={self.id}, title='{self.title}', liked={self.liked})>"


class User(Base):
    """User record (read-only here)."""
    __tablename__ = 'tb_user'

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(String(11), nullable=False, unique=True)
    nick_name = Column(String(32), nullable=False)
    icon = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, nick_name='{self.nick_name}')>"


def create_all_tables(engine):
    """Create all tables defined on Base."""
    Base.metadata.create_all(bind=engine)


def drop_all_tables(engine):
    """Drop all tables defined on Base."""
    Base.metadata.drop_all(bind=engine)
