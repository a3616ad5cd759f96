"""
Unit tests for the local cache backends.
"""
from unittest.mock import MagicMock, patch

import pytest
import redis

from labelscan.services.errors import LocalStorageError
from labelscan.services.local_cache import MemoryCache, RedisCache, get_local_cache


@pytest.fixture
def redis_client():
    return MagicMock(spec=redis.Redis)


@pytest.fixture
def redis_cache(redis_client):
    return RedisCache(client=redis_client, namespace="test:")


class TestRedisCache:
    """Tests for the Redis backend."""

    def test_get_decodes_bytes(self, redis_cache, redis_client):
        redis_client.get.return_value = b"3"

        assert redis_cache.get("@lastSeenScanCount") == "3"
        redis_client.get.assert_called_once_with("test:@lastSeenScanCount")

    def test_get_missing(self, redis_cache, redis_client):
        redis_client.get.return_value = None

        assert redis_cache.get("@scanHistory") is None

    def test_set_uses_namespace(self, redis_cache, redis_client):
        redis_cache.set("@scanHistory", "[]")

        redis_client.set.assert_called_once_with("test:@scanHistory", "[]")

    def test_multi_remove_is_single_delete(self, redis_cache, redis_client):
        redis_cache.multi_remove(["@scannedItemsHistory", "@lastSeenScanCount"])

        redis_client.delete.assert_called_once_with(
            "test:@scannedItemsHistory", "test:@lastSeenScanCount"
        )

    def test_multi_remove_nothing(self, redis_cache, redis_client):
        redis_cache.multi_remove([])

        redis_client.delete.assert_not_called()

    @pytest.mark.parametrize("method,args", [
        ("get", ("@k",)),
        ("set", ("@k", "v")),
        ("remove", ("@k",)),
        ("multi_remove", (["@k", "@j"],)),
    ])
    def test_redis_errors_become_local_storage_errors(self, redis_cache, redis_client, method, args):
        redis_client.get.side_effect = redis.ConnectionError("down")
        redis_client.set.side_effect = redis.ConnectionError("down")
        redis_client.delete.side_effect = redis.ConnectionError("down")

        with pytest.raises(LocalStorageError):
            getattr(redis_cache, method)(*args)


class TestMemoryCache:
    """Tests for the in-process backend."""

    def test_round_trip_and_remove(self):
        cache = MemoryCache({"@a": "1"})
        cache.set("@b", "2")

        assert cache.get("@a") == "1"
        cache.multi_remove(["@a", "@b", "@missing"])
        assert cache.get("@a") is None
        assert cache.get("@b") is None


class TestGetLocalCache:
    """Tests for backend selection."""

    def test_memory(self):
        assert isinstance(get_local_cache("memory"), MemoryCache)

    def test_redis(self):
        with patch("redis.from_url") as from_url:
            cache = get_local_cache("redis")

        assert isinstance(cache, RedisCache)
        from_url.assert_called_once()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            get_local_cache("sqlite")
