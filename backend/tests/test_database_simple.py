"""
Store tests: configuration, session scopes and repositories.
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import patch
from sqlalchemy.exc import IntegrityError

from reviewhub.database import (
    DatabaseConfig,
    StoreUnavailableError,
    Shop,
    ShopRepository,
    VoucherRepository,
    UserRepository,
    User,
)
from reviewhub.models import ShopModel, VoucherOrderModel


class TestDatabaseConfig:

    def test_default_url_is_sqlite(self):
        with patch.dict('os.environ', {}, clear=True):
            config = DatabaseConfig()
        assert config.database_url == "sqlite:///reviewhub.db"
        assert config.db_type == "sqlite"

    def test_url_from_components(self):
        with patch.dict('os.environ', {
            'DB_TYPE': 'postgresql',
            'DB_HOST': 'db',
            'DB_USER': 'app',
            'DB_PASSWORD': 'pw',
            'DB_NAME': 'reviews'
        }, clear=True):
            config = DatabaseConfig()
        assert config.database_url == "postgresql://app:pw@db:5432/reviews"
        assert config.get_connection_info()["database_url"] == "db:5432/reviews"

    def test_unsupported_type(self):
        with patch.dict('os.environ', {'DB_TYPE': 'oracle'}, clear=True):
            with pytest.raises(ValueError):
                DatabaseConfig()

    def test_memory_database(self):
        assert DatabaseConfig("sqlite://").is_memory_database
        assert not DatabaseConfig("sqlite:///file.db").is_memory_database

    def test_connection(self, db_config):
        assert db_config.test_connection()

    def test_unreachable_store(self):
        config = DatabaseConfig("sqlite:////nonexistent-dir/reviewhub.db")
        with pytest.raises(StoreUnavailableError):
            config.initialize()
        assert not config.test_connection()


class TestSessionScope:

    def test_commit_on_success(self, db_config, seed_shop):
        seed_shop(1)
        with db_config.get_session_context() as session:
            assert ShopRepository.get_by_id(session, 1).name == "103 Tea House"

    def test_rollback_on_error(self, db_config):
        with pytest.raises(RuntimeError):
            with db_config.get_session_context() as session:
                session.add(User(id=1, phone="10000000001", nick_name="a"))
                session.flush()
                raise RuntimeError("abort")

        with db_config.get_session_context() as session:
            assert UserRepository.get_by_id(session, 1) is None

    def test_integrity_error_passes_through(self, db_config):
        with pytest.raises(IntegrityError):
            with db_config.get_session_context() as session:
                session.add(User(id=1, phone="10000000001", nick_name="a"))
                session.add(User(id=2, phone="10000000001", nick_name="b"))
                session.flush()


class TestRepositories:

    def test_shop_update(self, db_config, seed_shop):
        seed_shop(1)
        with db_config.get_session_context() as session:
            shop = ShopRepository.get_by_id(session, 1)
            rows = ShopRepository.update_by_id(session, shop.model_copy(update={"area": "Old Town"}))
        assert rows == 1

        with db_config.get_session_context() as session:
            assert ShopRepository.get_by_id(session, 1).area == "Old Town"
            assert ShopRepository.update_by_id(
                session, ShopModel(id=9, name="x", type_id=1, address="x")
            ) == 0

    def test_conditional_decrement_stops_at_zero(self, db_config, seed_voucher):
        seed_voucher(stock=2)
        with db_config.get_session_context() as session:
            results = [VoucherRepository.conditional_decrement_stock(session, 1) for _ in range(3)]
        assert results == [1, 1, 0]

        with db_config.get_session_context() as session:
            assert VoucherRepository.get_by_id(session, 1).stock == 0

    def test_order_uniqueness(self, db_config):
        with db_config.get_session_context() as session:
            VoucherRepository.insert_order(session, VoucherOrderModel(id=10, user_id=1, voucher_id=1))
            assert VoucherRepository.count_orders(session, 1, 1) == 1

        with pytest.raises(IntegrityError):
            with db_config.get_session_context() as session:
                VoucherRepository.insert_order(session, VoucherOrderModel(id=11, user_id=1, voucher_id=1))

    def test_users_in_requested_order(self, db_config, seed_blog):
        seed_blog(user_ids=(1, 2, 3))
        with db_config.get_session_context() as session:
            users = UserRepository.list_by_ids(session, [3, 99, 1])
        assert [u.id for u in users] == [3, 1]

    def test_voucher_window(self, db_config, seed_voucher):
        seed_voucher(begin_offset=timedelta(hours=1), end_offset=timedelta(hours=2))
        with db_config.get_session_context() as session:
            voucher = VoucherRepository.get_by_id(session, 1)
        now = datetime.now()
        assert not voucher.is_started(now)
        assert voucher.is_started(now + timedelta(hours=1, minutes=1))
        assert voucher.is_ended(now + timedelta(hours=3))
