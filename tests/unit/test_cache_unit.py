import redis

from clubify_checkout.config import Settings
from clubify_checkout.infra.cache import CacheManager


class BrokenRedis:
    """Client Redis qui échoue systématiquement (serveur injoignable)."""

    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError("redis down")

    get = set = delete = exists = ping = _fail


def test_set_get_with_prefix_and_ttl(cache, fake_redis):
    assert cache.set("cart_c1", {"id": "c1", "total": "220.00"}, ttl=120) is True
    assert cache.get("cart_c1") == {"id": "c1", "total": "220.00"}
    assert fake_redis.ttl("test:cart_c1") == 120
    assert cache.has("cart_c1")


def test_delete_many(cache):
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.delete("a", "b", "missing") == 2
    assert cache.get("a") is None
    assert cache.delete() == 0


def test_remember_calls_producer_once(cache):
    calls = []

    def producer():
        calls.append(1)
        return {"id": "c1"}

    assert cache.remember("cart_c1", 60, producer) == {"id": "c1"}
    assert cache.remember("cart_c1", 60, producer) == {"id": "c1"}
    assert len(calls) == 1


def test_remember_never_caches_none(cache):
    calls = []

    def producer():
        calls.append(1)
        return None

    assert cache.remember("cart_missing", 60, producer) is None
    assert cache.remember("cart_missing", 60, producer) is None
    assert len(calls) == 2


def test_disabled_cache_is_pass_through(fake_redis):
    cache = CacheManager(fake_redis, prefix="test", enabled=False)
    calls = []
    producer = lambda: calls.append(1) or {"v": 1}
    cache.remember("k", 60, producer)
    cache.remember("k", 60, producer)
    assert len(calls) == 2
    assert cache.set("k", 1) is False
    assert cache.ping() is False


def test_unreachable_redis_degrades_gracefully():
    cache = CacheManager(BrokenRedis(), prefix="test")
    assert cache.get("k") is None
    assert cache.set("k", 1) is False
    assert cache.delete("k") == 0
    assert cache.has("k") is False
    assert cache.ping() is False
    assert cache.remember("k", 60, lambda: {"v": 1}) == {"v": 1}


def test_from_settings_disabled():
    cache = CacheManager.from_settings(Settings(cache_enabled=False))
    assert cache.enabled is False


def test_from_settings_with_injected_client(fake_redis):
    cache = CacheManager.from_settings(Settings(cache_prefix="shop", cache_ttl=90), client=fake_redis)
    assert cache.enabled
    assert cache.key("x") == "shop:x"
    assert cache.ping() is True
