"""
Seckill (flash sale) order sequencer.

One order per user per voucher, never more orders than stock:

- a per-user distributed lock serializes one user's concurrent requests
  across every instance
- under the lock, the order id is allocated first, then the existing-order
  check, the conditional stock decrement and the order insert share one
  store transaction that never awaits
- the decrement only succeeds while ``stock > 0``, and a unique
  constraint on (user_id, voucher_id) backs up the duplicate check
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError

from ..cache.config import CacheUnavailableError
from ..cache.utils import key_manager
from ..database.config import DatabaseConfig
from ..database.repositories import VoucherRepository
from ..models.enums import SeckillStatus
from ..models.voucher import SeckillResult, VoucherOrderModel
from ..utils.config import ReviewHubSettings
from .id_generator import RedisIdWorker, SequenceOverflowError
from .lock_manager import DistributedLockManager, LockInfo

logger = logging.getLogger(__name__)

ORDER_ID_PREFIX = "order"


class SeckillService:
    """Validates a purchase request and creates at most one order for it."""

    def __init__(
        self,
        db_config: DatabaseConfig,
        lock_manager: DistributedLockManager,
        id_worker: RedisIdWorker,
        settings: Optional[ReviewHubSettings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.db = db_config
        self.locks = lock_manager
        self.id_worker = id_worker
        self.settings = settings or ReviewHubSettings()
        self.clock = clock or datetime.now

    def _result(self, status: SeckillStatus, voucher_id: int, user_id: int,
                message: str = "", order_id: Optional[int] = None) -> SeckillResult:
        return SeckillResult(
            status=status,
            voucher_id=voucher_id,
            user_id=user_id,
            order_id=order_id,
            message=message
        )

    async def seckill_voucher(self, voucher_id: int, user_id: int) -> SeckillResult:
        """
        Attempt to buy one unit of a seckill voucher.

        Returns:
            SeckillResult with the order id on success

        Raises:
            StoreUnavailableError: the store could not be read or written
        """
        with self.db.get_session_context() as session:
            voucher = VoucherRepository.get_by_id(session, voucher_id)

        if voucher is None:
            return self._result(SeckillStatus.VOUCHER_NOT_FOUND, voucher_id, user_id, "voucher does not exist")

        now = self.clock()
        if not voucher.is_started(now):
            return self._result(SeckillStatus.SALE_NOT_STARTED, voucher_id, user_id, "sale has not started")
        if voucher.is_ended(now):
            return self._result(SeckillStatus.SALE_ENDED, voucher_id, user_id, "sale has ended")
        if voucher.stock < 1:
            return self._result(SeckillStatus.OUT_OF_STOCK, voucher_id, user_id, "out of stock")

        resource = key_manager.order_lock_resource(user_id)
        try:
            lock = await self.locks.acquire_lock(
                resource,
                ttl_seconds=self.settings.lock_order_ttl,
                timeout_seconds=self.settings.order_lock_timeout
            )
        except CacheUnavailableError as e:
            logger.warning(f"Order lock unavailable for user {user_id}: {e}")
            return self._result(SeckillStatus.SERVICE_UNAVAILABLE, voucher_id, user_id, "lock service unavailable")

        if lock is None:
            logger.info(f"User {user_id} already has a purchase in progress for voucher {voucher_id}")
            return self._result(
                SeckillStatus.DUPLICATE_PURCHASE, voucher_id, user_id, "purchase already in progress"
            )

        try:
            return await self.create_voucher_order(voucher_id, user_id)
        finally:
            await self._release(lock)

    async def _release(self, lock: LockInfo) -> None:
        try:
            await self.locks.release_lock(lock)
        except CacheUnavailableError as e:
            # The lock TTL reclaims it
            logger.warning(f"Failed to release {lock.lock_key}: {e}")

    async def create_voucher_order(self, voucher_id: int, user_id: int) -> SeckillResult:
        """
        Create the order in one transaction. Call only while holding the
        user's order lock.

        The order id is allocated before the transaction opens; nothing
        awaits while it is open. An order that is then rejected leaves a
        gap in the id sequence.
        """
        try:
            order_id = await self.id_worker.next_id(ORDER_ID_PREFIX)
        except (CacheUnavailableError, SequenceOverflowError) as e:
            logger.error(f"Order id generation failed for user {user_id}: {e}")
            return self._result(SeckillStatus.SERVICE_UNAVAILABLE, voucher_id, user_id, "order id unavailable")

        try:
            with self.db.get_session_context() as session:
                if VoucherRepository.count_orders(session, user_id, voucher_id) > 0:
                    return self._result(
                        SeckillStatus.DUPLICATE_PURCHASE, voucher_id, user_id, "user already purchased"
                    )

                if not VoucherRepository.conditional_decrement_stock(session, voucher_id):
                    return self._result(SeckillStatus.OUT_OF_STOCK, voucher_id, user_id, "out of stock")

                VoucherRepository.insert_order(
                    session,
                    VoucherOrderModel(id=order_id, user_id=user_id, voucher_id=voucher_id)
                )
        except IntegrityError:
            logger.info(f"Duplicate order rejected by store for user {user_id}, voucher {voucher_id}")
            return self._result(SeckillStatus.DUPLICATE_PURCHASE, voucher_id, user_id, "user already purchased")

        logger.info(f"Order {order_id} created for user {user_id}, voucher {voucher_id}")
        return self._result(SeckillStatus.SUCCESS, voucher_id, user_id, "order created", order_id=order_id)
