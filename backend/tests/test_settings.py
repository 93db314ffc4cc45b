"""
Settings loading and validation tests.
"""

import pytest
from unittest.mock import patch

from reviewhub.utils import ReviewHubSettings, load_settings


class TestSettings:

    def test_defaults(self):
        settings = ReviewHubSettings()
        assert settings.cache_null_ttl == 120
        assert settings.cache_shop_ttl == 1800
        assert settings.logical_expire_seconds == 20
        assert settings.lock_order_ttl == 10.0
        assert settings.order_lock_timeout == 1.2
        assert settings.rebuild_pool_size == 10
        assert settings.id_begin_timestamp == 1740182400

    def test_load_from_env(self, tmp_path):
        with patch.dict('os.environ', {
            'CACHE_NULL_TTL': '60',
            'REBUILD_POOL_SIZE': '4',
            'LOG_LEVEL': 'debug'
        }, clear=True):
            settings = load_settings(str(tmp_path / "missing.env"))
        assert settings.cache_null_ttl == 60
        assert settings.rebuild_pool_size == 4
        assert settings.log_level == "DEBUG"

    def test_load_from_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("LOGICAL_EXPIRE_SECONDS=45\n")
        with patch.dict('os.environ', {}, clear=True):
            settings = load_settings(str(env_file))
        assert settings.logical_expire_seconds == 45

    @pytest.mark.parametrize("env", [
        {'CACHE_NULL_TTL': '0'},
        {'REBUILD_POOL_SIZE': 'many'},
        {'LOG_LEVEL': 'LOUD'},
        {'ORDER_LOCK_TIMEOUT': '30'},
    ])
    def test_invalid_values(self, tmp_path, env):
        with patch.dict('os.environ', env, clear=True):
            with pytest.raises(ValueError):
                load_settings(str(tmp_path / "missing.env"))
