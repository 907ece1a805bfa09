"""Unit tests for the type-tagged TTL cache."""

from unittest.mock import Mock

import pytest

from jobguard.adapters.storage.in_memory import InMemoryKeyValueStore
from jobguard.core.errors import StorageAppError, StorageQuotaExceededError
from jobguard.services.cache import CACHE_DURATIONS_MS, CacheEntry, CacheType, TTLCache, duration_for

PREFIX = "jt_cache_"


class FlakyStore(InMemoryKeyValueStore):
    """Store that can refuse reads or writes."""

    def __init__(self, *, quota_bytes=None, fail_reads=False, fail_writes=False) -> None:
        super().__init__(quota_bytes=quota_bytes)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.set_calls = 0

    def get(self, key):
        if self.fail_reads:
            raise StorageAppError(code="storage_unavailable", message="down")
        return super().get(key)

    def set(self, key, value):
        self.set_calls += 1
        if self.fail_writes:
            raise StorageAppError(code="storage_unavailable", message="down")
        super().set(key, value)


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(store, clock) -> TTLCache:
    return TTLCache(store, prefix=PREFIX, clock=clock)


def test_set_then_get_returns_same_data(cache) -> None:
    data = {"offers": [{"id": "o1", "title": "Stage analyste"}], "total": 1}

    cache.set_in_cache("k", CacheType.OFFERS_LIST, data)

    assert cache.get_from_cache("k", CacheType.OFFERS_LIST) == data


def test_accepts_type_tag_as_string(cache) -> None:
    cache.set_in_cache("k", "LOCATIONS", ["Paris", "Lyon"])

    assert cache.get_from_cache("k", "LOCATIONS") == ["Paris", "Lyon"]


def test_entry_is_stored_under_namespace_with_expiry(cache, store, clock) -> None:
    cache.set_in_cache("user_1", CacheType.USER_PROFILE, {"name": "Ana"})

    entry = CacheEntry.from_json(store.get(f"{PREFIX}user_1"))
    assert entry.timestamp == clock.current
    assert entry.expires_at == clock.current + 5 * 60 * 1000


def test_entry_valid_until_exact_expiry(cache, clock) -> None:
    cache.set_in_cache("k", CacheType.OFFERS_LIST, [1])

    clock.advance(CACHE_DURATIONS_MS[CacheType.OFFERS_LIST])

    assert cache.get_from_cache("k", CacheType.OFFERS_LIST) == [1]


def test_expired_entry_is_a_miss_and_purged(cache, store, clock) -> None:
    cache.set_in_cache("k", CacheType.OFFERS_LIST, [1])

    clock.advance(CACHE_DURATIONS_MS[CacheType.OFFERS_LIST] + 1)

    assert cache.get_from_cache("k", CacheType.OFFERS_LIST) is None
    assert store.get(f"{PREFIX}k") is None
    assert cache.stats()["evictions"] == 1


def test_duration_fixed_at_write_time(cache, store, clock, monkeypatch) -> None:
    cache.set_in_cache("k", CacheType.LOCATIONS, ["Paris"])
    written = CacheEntry.from_json(store.get(f"{PREFIX}k")).expires_at

    monkeypatch.setitem(CACHE_DURATIONS_MS, CacheType.LOCATIONS, 1)
    clock.advance(10)

    assert cache.get_from_cache("k", CacheType.LOCATIONS) == ["Paris"]
    assert CacheEntry.from_json(store.get(f"{PREFIX}k")).expires_at == written


def test_invalidate_cache_removes_one_key(cache) -> None:
    cache.set_in_cache("a", CacheType.STATIC_DATA, 1)
    cache.set_in_cache("b", CacheType.STATIC_DATA, 2)

    cache.invalidate_cache("a")

    assert cache.get_from_cache("a", CacheType.STATIC_DATA) is None
    assert cache.get_from_cache("b", CacheType.STATIC_DATA) == 2


def test_invalidate_pattern_only_matches_prefix(cache, store) -> None:
    for key in ("user_1", "user_2", "order_1"):
        cache.set_in_cache(key, CacheType.USER_PROFILE, {"k": key})
    store.set("user_outside_namespace", "x")

    removed = cache.invalidate_cache_pattern("user_")

    assert removed == 2
    assert sorted(store.keys()) == [f"{PREFIX}order_1", "user_outside_namespace"]


def test_clear_expired_removes_expired_and_corrupt(cache, store, clock) -> None:
    cache.set_in_cache("short", CacheType.OFFERS_LIST, 1)
    cache.set_in_cache("long", CacheType.LOCATIONS, 2)
    store.set(f"{PREFIX}corrupt", "not-json")
    store.set("foreign", "not-json")

    clock.advance(CACHE_DURATIONS_MS[CacheType.OFFERS_LIST] + 1)
    removed = cache.clear_expired_cache()

    assert removed == 2
    assert sorted(store.keys()) == ["foreign", f"{PREFIX}long"]


def test_clear_expired_is_idempotent(cache, store, clock) -> None:
    cache.set_in_cache("short", CacheType.OFFERS_LIST, 1)
    cache.set_in_cache("long", CacheType.LOCATIONS, 2)
    clock.advance(CACHE_DURATIONS_MS[CacheType.OFFERS_LIST] + 1)

    cache.clear_expired_cache()
    after_first = {k: store.get(k) for k in store.keys()}
    assert cache.clear_expired_cache() == 0
    after_second = {k: store.get(k) for k in store.keys()}

    assert after_first == after_second


def test_clear_all_only_touches_namespace(cache, store) -> None:
    cache.set_in_cache("a", CacheType.STATIC_DATA, 1)
    cache.set_in_cache("b", CacheType.STATIC_DATA, 2)
    store.set("rl_login-a@x.com", "{}")

    assert cache.clear_all_cache() == 2
    assert store.keys() == ["rl_login-a@x.com"]


def test_corrupt_entry_is_a_miss_and_removed(cache, store) -> None:
    store.set(f"{PREFIX}k", '{"data": 1}')

    assert cache.get_from_cache("k", CacheType.STATIC_DATA) is None
    assert store.get(f"{PREFIX}k") is None


def test_read_failure_is_a_miss(clock) -> None:
    cache = TTLCache(FlakyStore(fail_reads=True), clock=clock)

    assert cache.get_from_cache("k", CacheType.STATIC_DATA) is None
    assert cache.stats()["misses"] == 1


def test_write_failure_is_dropped_silently(clock) -> None:
    store = FlakyStore(fail_writes=True)
    cache = TTLCache(store, clock=clock)

    cache.set_in_cache("k", CacheType.STATIC_DATA, 1)

    assert store.set_calls == 1
    assert store.keys() == []


def test_quota_failure_sweeps_expired_then_retries(clock) -> None:
    store = InMemoryKeyValueStore(quota_bytes=150)
    cache = TTLCache(store, clock=clock)
    cache.set_in_cache("old", CacheType.OFFERS_LIST, "x" * 40)
    clock.advance(CACHE_DURATIONS_MS[CacheType.OFFERS_LIST] + 1)

    cache.set_in_cache("new", CacheType.OFFERS_LIST, "y" * 40)

    assert store.get(f"{PREFIX}old") is None
    assert cache.get_from_cache("new", CacheType.OFFERS_LIST) == "y" * 40


def test_quota_failure_drops_write_when_nothing_expired(clock) -> None:
    store = InMemoryKeyValueStore(quota_bytes=150)
    cache = TTLCache(store, clock=clock)
    cache.set_in_cache("old", CacheType.OFFERS_LIST, "x" * 40)

    cache.set_in_cache("new", CacheType.OFFERS_LIST, "y" * 40)

    assert cache.get_from_cache("old", CacheType.OFFERS_LIST) == "x" * 40
    assert cache.get_from_cache("new", CacheType.OFFERS_LIST) is None


def test_unserializable_data_is_not_cached(cache, store) -> None:
    cache.set_in_cache("k", CacheType.STATIC_DATA, {"when": object()})

    assert store.keys() == []


def test_unknown_type_is_rejected(cache) -> None:
    with pytest.raises(ValueError):
        cache.set_in_cache("k", "NOT_A_TYPE", 1)


def test_get_or_fetch_populates_on_miss_only(cache) -> None:
    fetch = Mock(return_value={"id": "o1"})

    first = cache.get_or_fetch("offer_o1", CacheType.OFFER_DETAIL, fetch)
    second = cache.get_or_fetch("offer_o1", CacheType.OFFER_DETAIL, fetch)

    assert first == second == {"id": "o1"}
    fetch.assert_called_once()


def test_get_or_fetch_does_not_cache_none(cache) -> None:
    fetch = Mock(return_value=None)

    assert cache.get_or_fetch("k", CacheType.STATIC_DATA, fetch) is None
    assert cache.get_or_fetch("k", CacheType.STATIC_DATA, fetch) is None
    assert fetch.call_count == 2


def test_stats_counts_hits_and_misses(cache) -> None:
    cache.get_from_cache("missing", CacheType.STATIC_DATA)
    cache.set_in_cache("k", CacheType.STATIC_DATA, 1)
    cache.get_from_cache("k", CacheType.STATIC_DATA)

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1
    assert stats["prefix"] == PREFIX


def test_duration_table_covers_every_type() -> None:
    assert set(CACHE_DURATIONS_MS) == set(CacheType)
    assert duration_for("LOCATIONS") == 60 * 60 * 1000
