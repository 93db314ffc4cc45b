"""
Pydantic model tests.
"""

import pytest
from datetime import datetime, timedelta
from pydantic import ValidationError

from reviewhub.models import (
    LogicalExpiryEnvelope,
    QueryStrategy,
    SeckillResult,
    SeckillStatus,
    ShopModel,
    VoucherModel,
)


class TestShopModel:

    def test_json_round_trip(self):
        shop = ShopModel(id=1, name="103 Tea House", type_id=1, address="1 Harbour Road", x=120.1, y=30.2)
        assert ShopModel.model_validate_json(shop.model_dump_json()) == shop

    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            ShopModel(id=1, name="x", type_id=1, address="x", score=51)


class TestLogicalExpiryEnvelope:

    def test_typed_decode(self):
        now = datetime(2025, 3, 1, 12, 0)
        shop = ShopModel(id=1, name="x", type_id=1, address="x")
        raw = LogicalExpiryEnvelope[ShopModel](data=shop, expire_time=now).model_dump_json()

        envelope = LogicalExpiryEnvelope[ShopModel].model_validate_json(raw)
        assert isinstance(envelope.data, ShopModel)
        assert envelope.expire_time == now

    def test_expiry_boundary(self):
        now = datetime(2025, 3, 1, 12, 0)
        envelope = LogicalExpiryEnvelope[ShopModel](
            data=ShopModel(id=1, name="x", type_id=1, address="x"),
            expire_time=now
        )
        assert envelope.is_expired(now)
        assert not envelope.is_expired(now - timedelta(seconds=1))


class TestVoucherModels:

    def test_sale_window(self):
        begin = datetime(2025, 3, 1, 10, 0)
        voucher = VoucherModel(voucher_id=1, stock=3, begin_time=begin, end_time=begin + timedelta(hours=2))

        assert not voucher.is_started(begin - timedelta(seconds=1))
        assert voucher.is_started(begin)
        assert not voucher.is_ended(begin + timedelta(hours=2))
        assert voucher.is_ended(begin + timedelta(hours=2, seconds=1))

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            VoucherModel(voucher_id=1, stock=-1, begin_time=datetime.now(), end_time=datetime.now())

    def test_result_success_flag(self):
        ok = SeckillResult(status=SeckillStatus.SUCCESS, voucher_id=1, user_id=2, order_id=3)
        dup = SeckillResult(status=SeckillStatus.DUPLICATE_PURCHASE, voucher_id=1, user_id=2)
        assert ok.success
        assert not dup.success


def test_query_strategy_values():
    assert QueryStrategy("logical_expire") is QueryStrategy.LOGICAL_EXPIRE
