from datetime import timedelta

import pytest
import redis

from recipebox.cache import RedisCache
from recipebox.errors import CacheError


class FakeRedis:
    """Stands in for ``redis.Redis``; ``down`` makes every call fail."""

    def __init__(self) -> None:
        self.data = {}
        self.expiry = {}
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise redis.exceptions.ConnectionError("Error 111 connecting to localhost:6379.")

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def delete(self, *keys):
        self._check()
        return sum(self.data.pop(key, None) is not None for key in keys)


@pytest.fixture
def fake_redis():
    return FakeRedis()


def test_set_passes_ttl(fake_redis):
    RedisCache(fake_redis).set("recipe:1", "{}", timedelta(hours=12))

    assert fake_redis.expiry["recipe:1"] == timedelta(hours=12)


def test_get_returns_none_on_miss(fake_redis):
    assert RedisCache(fake_redis).get("recipes") is None


def test_get_returns_stored_value(fake_redis):
    fake_redis.data["recipes"] = "[]"

    assert RedisCache(fake_redis).get("recipes") == "[]"


def test_delete_removes_every_key(fake_redis):
    fake_redis.data.update({"recipes": "[]", "recipe:1": "{}", "recipe:2": "{}"})

    RedisCache(fake_redis).delete("recipes", "recipe:1")

    assert list(fake_redis.data) == ["recipe:2"]


def test_delete_without_keys_is_a_no_op(fake_redis):
    fake_redis.down = True

    RedisCache(fake_redis).delete()


@pytest.mark.parametrize(
    "call",
    [
        lambda cache: cache.get("recipes"),
        lambda cache: cache.set("recipes", "[]", timedelta(seconds=1)),
        lambda cache: cache.delete("recipes"),
    ],
)
def test_connection_failures_raise_cache_error(fake_redis, call):
    fake_redis.down = True

    with pytest.raises(CacheError, match="cache unavailable"):
        call(RedisCache(fake_redis))


def test_from_url_builds_decoding_client():
    cache = RedisCache.from_url("redis://localhost:6379/3", timeout=0.5)

    kwargs = cache._client.connection_pool.connection_kwargs
    assert kwargs["decode_responses"] is True
    assert kwargs["socket_timeout"] == 0.5
    assert kwargs["db"] == 3


def test_cache_error_hides_backend_detail(fake_redis):
    fake_redis.down = True

    with pytest.raises(CacheError) as excinfo:
        RedisCache(fake_redis).get("recipes")

    assert str(excinfo.value) == "cache unavailable"
    assert isinstance(excinfo.value.__cause__, redis.exceptions.ConnectionError)
