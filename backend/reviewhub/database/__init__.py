"""
Database package for reviewhub.

This package provides the SQLAlchemy models, engine/session configuration
and the repositories the services use as their authoritative store.
"""

from .models import (
    Base,
    Shop,
    SeckillVoucher,
    VoucherOrder,
    Blog,
    User,
    create_all_tables,
    drop_all_tables
)

from .config import DatabaseConfig, StoreUnavailableError

from .repositories import (
    ShopRepository,
    VoucherRepository,
    BlogRepository,
    UserRepository,
)

__all__ = [
    # Models
    'Base',
    'Shop',
    'SeckillVoucher',
    'VoucherOrder',
    'Blog',
    'User',
    'create_all_tables',
    'drop_all_tables',

    # Configuration
    'DatabaseConfig',
    'StoreUnavailableError',

    # Repositories
    'ShopRepository',
    'VoucherRepository',
    'BlogRepository',
    'UserRepository',
]
