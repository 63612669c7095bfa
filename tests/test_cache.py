import fnmatch
import json

import pytest
import redis

from school_inventory import cache


class FakeRedis:
    """In-memory stand-in for the few redis commands the cache uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        self.ttls[key] = ttl

    def keys(self, pattern):
        return [key for key in self.store if fnmatch.fnmatchcase(key, pattern)]

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


class BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("down")

    def setex(self, key, ttl, value):
        raise redis.ConnectionError("down")

    def keys(self, pattern):
        raise redis.ConnectionError("down")


@pytest.fixture
def fake_redis(monkeypatch):
    client = FakeRedis()
    monkeypatch.setattr(cache, "redis_client", client)
    return client


def test_disabled_cache_is_a_no_op(monkeypatch):
    monkeypatch.setattr(cache, "redis_client", None)
    assert cache.get_cache("items:x") is None
    assert cache.set_cache("items:x", [1]) is False
    assert cache.invalidate_catalog() is False


def test_set_and_get(fake_redis):
    assert cache.set_cache("items:a", [{"id": 1}], ttl=30)
    assert json.loads(fake_redis.store["items:a"]) == [{"id": 1}]
    assert fake_redis.ttls["items:a"] == 30
    assert cache.get_cache("items:a") == [{"id": 1}]


def test_redis_errors_degrade_to_misses(monkeypatch):
    monkeypatch.setattr(cache, "redis_client", BrokenRedis())
    assert cache.get_cache("items:a") is None
    assert cache.set_cache("items:a", []) is False
    assert cache.delete_pattern("items:*") is False


def test_cache_result_hits_and_ignores_session(fake_redis):
    calls = []

    @cache.cache_result("items", ttl=60)
    def page(*, db, keyword, skip):
        calls.append((db, keyword, skip))
        return [keyword, skip]

    assert page(db="session-1", keyword="globe", skip=0) == ["globe", 0]
    assert page(db="session-2", keyword="globe", skip=0) == ["globe", 0]
    assert len(calls) == 1
    assert list(fake_redis.store) == ["items:keyword=globe:skip=0"]

    page(db="session-1", keyword="globe", skip=10)
    assert len(calls) == 2


def test_invalidate_catalog_only_drops_catalog_keys(fake_redis):
    cache.set_cache("items:keyword=None", [])
    cache.set_cache("items:keyword=globe", [])
    cache.set_cache("users:1", {"id": 1})

    assert cache.invalidate_catalog() is True
    assert list(fake_redis.store) == ["users:1"]


def test_lifecycle_changes_invalidate_catalog(fake_redis, db, make_item, admin, student):
    from school_inventory import lifecycle

    item = make_item("Globe", 1)
    request = lifecycle.create_request(db, item.id, student)
    cache.set_cache("items:keyword=None:limit=100:skip=0", [{"id": item.id, "quantity": 1}])

    lifecycle.approve_request(db, request.id, admin)

    assert fake_redis.store == {}
