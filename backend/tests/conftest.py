"""
Shared fixtures: an in-memory Valkey stand-in and an in-memory SQLite store.
"""

import math
import threading
import time
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from valkey.exceptions import ConnectionError, ResponseError

from reviewhub.cache import CacheManager, ValkeyClient, ValkeyConfig
from reviewhub.database import DatabaseConfig, SeckillVoucher, Shop, Blog, User
from reviewhub.services import RebuildExecutor
from reviewhub.utils import ReviewHubSettings


class FakeValkey:
    """
    Thread-safe in-memory Valkey with key expiry.

    Supports the commands the services use, including EVAL of the lock
    release/extend scripts. Set ``down = True`` to make every data
    command raise ConnectionError.
    """

    def __init__(self):
        self.data = {}
        self.zsets = {}
        self.expiry = {}
        self.down = False
        self.time_offset = 0.0
        self._lock = threading.RLock()

    def advance(self, seconds):
        """Move the expiry clock forward."""
        with self._lock:
            self.time_offset += seconds

    def _now(self):
        return time.monotonic() + self.time_offset

    def _check(self):
        if self.down:
            raise ConnectionError("Connection refused")

    def _purge(self, key):
        deadline = self.expiry.get(key)
        if deadline is not None and deadline <= self._now():
            self._drop(key)

    def _drop(self, key):
        removed = key in self.data or key in self.zsets
        self.data.pop(key, None)
        self.zsets.pop(key, None)
        self.expiry.pop(key, None)
        return removed

    def _exists(self, key):
        self._purge(key)
        return key in self.data or key in self.zsets

    def ping(self):
        return True

    def info(self):
        return {"valkey_version": "8.0.0", "connected_clients": 1, "used_memory_human": "1M"}

    def close(self):
        pass

    def get(self, key):
        with self._lock:
            self._check()
            self._purge(key)
            return self.data.get(key)

    def set(self, key, value, ex=None, px=None, nx=False):
        with self._lock:
            self._check()
            if nx and self._exists(key):
                return None
            self.data[key] = str(value)
            self.expiry.pop(key, None)
            if ex is not None:
                self.expiry[key] = self._now() + ex
            elif px is not None:
                self.expiry[key] = self._now() + px / 1000.0
            return True

    def setex(self, key, ttl, value):
        return self.set(key, value, ex=ttl)

    def delete(self, *keys):
        with self._lock:
            self._check()
            return sum(1 for key in keys if self._exists(key) and self._drop(key))

    def exists(self, *keys):
        with self._lock:
            self._check()
            return sum(1 for key in keys if self._exists(key))

    def expire(self, key, seconds):
        return self.pexpire(key, int(seconds) * 1000)

    def pexpire(self, key, milliseconds):
        with self._lock:
            self._check()
            if not self._exists(key):
                return False
            self.expiry[key] = self._now() + int(milliseconds) / 1000.0
            return True

    def ttl(self, key):
        with self._lock:
            self._check()
            if not self._exists(key):
                return -2
            if key not in self.expiry:
                return -1
            return math.ceil(self.expiry[key] - self._now())

    def incr(self, key, amount=1):
        with self._lock:
            self._check()
            self._purge(key)
            value = int(self.data.get(key, 0)) + amount
            self.data[key] = str(value)
            return value

    def eval(self, script, numkeys, *args):
        with self._lock:
            self._check()
            keys, argv = args[:numkeys], args[numkeys:]
            key = keys[0]
            self._purge(key)
            if self.data.get(key) != str(argv[0]):
                return 0
            if "pexpire" in script:
                self.expiry[key] = self._now() + int(argv[1]) / 1000.0
                return 1
            if "del" in script:
                self._drop(key)
                return 1
            raise ResponseError("unsupported script")

    def zadd(self, key, mapping):
        with self._lock:
            self._check()
            zset = self.zsets.setdefault(key, {})
            added = sum(1 for member in mapping if member not in zset)
            zset.update({member: float(score) for member, score in mapping.items()})
            return added

    def zrem(self, key, *members):
        with self._lock:
            self._check()
            zset = self.zsets.get(key, {})
            removed = sum(1 for member in members if zset.pop(member, None) is not None)
            if key in self.zsets and not zset:
                self._drop(key)
            return removed

    def zrange(self, key, start, end):
        with self._lock:
            self._check()
            self._purge(key)
            ordered = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
            members = [member for member, _ in ordered]
            stop = None if end == -1 else end + 1
            return members[start:stop]

    def zscore(self, key, member):
        with self._lock:
            self._check()
            self._purge(key)
            return self.zsets.get(key, {}).get(member)


@pytest.fixture
def fake_valkey():
    return FakeValkey()


@pytest_asyncio.fixture
async def cache_manager(fake_valkey):
    manager = CacheManager(ValkeyClient(ValkeyConfig(), client=fake_valkey))
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
def db_config():
    db = DatabaseConfig("sqlite://")
    db.create_tables()
    yield db
    db.close()


@pytest.fixture
def settings():
    return ReviewHubSettings(mutex_wait_timeout=1.0, lock_retry_delay=0.01)


@pytest_asyncio.fixture
async def rebuild_executor():
    executor = RebuildExecutor(pool_size=2, queue_size=4)
    await executor.start()
    yield executor
    await executor.stop()


@pytest.fixture
def seed_shop(db_config):
    def _seed(shop_id=1, name="103 Tea House"):
        with db_config.get_session_context() as session:
            session.add(Shop(id=shop_id, name=name, type_id=1, address="1 Harbour Road", area="Riverside"))
    return _seed


@pytest.fixture
def seed_voucher(db_config):
    def _seed(voucher_id=1, stock=1, begin_offset=timedelta(hours=-1), end_offset=timedelta(hours=1)):
        now = datetime.now()
        with db_config.get_session_context() as session:
            session.add(SeckillVoucher(
                voucher_id=voucher_id,
                stock=stock,
                begin_time=now + begin_offset,
                end_time=now + end_offset
            ))
    return _seed


@pytest.fixture
def seed_blog(db_config):
    def _seed(blog_id=1, author_id=100, user_ids=(1, 2, 3, 4, 5, 6)):
        with db_config.get_session_context() as session:
            session.add(User(id=author_id, phone=f"1{author_id:010d}", nick_name="author", icon="/a.png"))
            for uid in user_ids:
                session.add(User(id=uid, phone=f"1{uid:010d}", nick_name=f"user{uid}"))
            session.add(Blog(id=blog_id, shop_id=1, user_id=author_id, title="Great tea", content="Loved it"))
    return _seed
