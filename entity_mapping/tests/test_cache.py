import typing

import pytest
from sqlalchemy import String
from sqlalchemy.engine import Dialect

from entity_mapping import UserType
from entity_mapping.cache import CacheKey, EntityCache


class CaseInsensitiveCode(UserType[str]):
    sql_type = String
    returned_class = str

    def equals(self, x: typing.Optional[str], y: typing.Optional[str]) -> bool:
        return (x or "").lower() == (y or "").lower()

    def hash(self, x: str) -> int:
        return hash(x.lower())

    def null_safe_get(self, value: typing.Any, dialect: typing.Optional[Dialect], owner: typing.Any = None) -> str:
        return value

    def null_safe_set(self, value: typing.Optional[str], dialect: typing.Optional[Dialect]) -> typing.Any:
        return value


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> EntityCache:
    return EntityCache(default_ttl_seconds=10, clock=clock)


def test_keys_of_different_entities_differ():
    assert CacheKey("subscriber", 1) != CacheKey("archived_subscriber", 1)
    assert CacheKey("subscriber", 1) == CacheKey("subscriber", 1)


def test_keys_compare_identities_with_user_type():
    user_type = CaseInsensitiveCode()

    assert CacheKey("country", "PL", user_type) == CacheKey("country", "pl", user_type)
    assert hash(CacheKey("country", "PL", user_type)) == hash(CacheKey("country", "pl", user_type))


def test_returns_what_was_put(cache: EntityCache) -> None:
    cache.put(CacheKey("subscriber", 1), {"id": 1})

    assert cache.get(CacheKey("subscriber", 1)) == {"id": 1}
    assert cache.get(CacheKey("subscriber", 2)) is None
    assert (cache.hits, cache.misses) == (1, 1)


def test_entries_expire(cache: EntityCache, clock: FakeClock) -> None:
    cache.put(CacheKey("subscriber", 1), {"id": 1})
    cache.put(CacheKey("subscriber", 2), {"id": 2}, ttl_seconds=60)

    clock.now = 30

    assert CacheKey("subscriber", 1) not in cache
    assert cache.get(CacheKey("subscriber", 1)) is None
    assert cache.get(CacheKey("subscriber", 2)) == {"id": 2}
    assert len(cache) == 1


def test_entries_without_ttl_live_forever(clock: FakeClock) -> None:
    cache = EntityCache(clock=clock)
    cache.put(CacheKey("plan", 1), {"id": 1})

    clock.now = 10 ** 9

    assert CacheKey("plan", 1) in cache


def test_evicts_single_entries_and_whole_entities(cache: EntityCache) -> None:
    cache.put(CacheKey("subscriber", 1), {"id": 1})
    cache.put(CacheKey("subscriber", 2), {"id": 2})
    cache.put(CacheKey("plan", 1), {"id": 1})

    assert cache.evict(CacheKey("subscriber", 1)) is True
    assert cache.evict(CacheKey("subscriber", 1)) is False
    assert cache.evict_entity("subscriber") == 1
    assert len(cache) == 1

    cache.clear()

    assert len(cache) == 0
