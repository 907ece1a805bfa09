"""Tests for the key/value storage adapters."""

import json
from unittest.mock import patch

import pytest

from jobguard.adapters.storage.factory import create_store
from jobguard.adapters.storage.file import JsonFileKeyValueStore
from jobguard.adapters.storage.in_memory import InMemoryKeyValueStore
from jobguard.core.config import StorageSettings
from jobguard.core.errors import StorageAppError, StorageQuotaExceededError
from jobguard.services.cache import CacheType, TTLCache


def test_in_memory_basic_operations() -> None:
    store = InMemoryKeyValueStore()

    store.set("a", "1")
    store.set("b", "2")
    store.set("a", "3")
    store.delete("b")
    store.delete("missing")

    assert store.get("a") == "3"
    assert store.get("b") is None
    assert store.keys() == ["a"]


def test_quota_counts_keys_and_values() -> None:
    store = InMemoryKeyValueStore(quota_bytes=10)

    store.set("k", "123456789")
    assert store.used_bytes == 10

    with pytest.raises(StorageQuotaExceededError) as exc_info:
        store.set("x", "y")

    assert exc_info.value.code == "storage_quota_exceeded"
    assert store.get("x") is None


def test_overwrite_reuses_previous_size() -> None:
    store = InMemoryKeyValueStore(quota_bytes=10)
    store.set("k", "123456789")

    store.set("k", "987654321")

    assert store.get("k") == "987654321"
    assert store.used_bytes == 10


def test_delete_frees_quota() -> None:
    store = InMemoryKeyValueStore(quota_bytes=10)
    store.set("k", "123456789")
    store.delete("k")

    store.set("j", "abcdefghi")

    assert store.used_bytes == 10


def test_invalid_quota() -> None:
    with pytest.raises(ValueError):
        InMemoryKeyValueStore(quota_bytes=0)


def test_file_store_persists_across_instances(tmp_path) -> None:
    path = tmp_path / "store.json"
    store = JsonFileKeyValueStore(path)
    store.set("rl_login-a@x.com", '{"attempts":[1]}')
    store.set("tmp", "x")
    store.delete("tmp")

    reopened = JsonFileKeyValueStore(path)

    assert reopened.keys() == ["rl_login-a@x.com"]
    assert json.loads(path.read_text(encoding="utf-8")) == {"rl_login-a@x.com": '{"attempts":[1]}'}


def test_file_store_starts_empty_on_corrupt_file(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{broken", encoding="utf-8")

    store = JsonFileKeyValueStore(path)

    assert store.keys() == []
    store.set("k", "v")
    assert json.loads(path.read_text(encoding="utf-8")) == {"k": "v"}


def test_file_store_enforces_quota(tmp_path) -> None:
    store = JsonFileKeyValueStore(tmp_path / "store.json", quota_bytes=4)

    with pytest.raises(StorageQuotaExceededError):
        store.set("key", "value")


def test_factory_selects_backend(tmp_path) -> None:
    memory = create_store(StorageSettings(backend="memory"))
    file_store = create_store(StorageSettings(backend="file", file_path=str(tmp_path / "s.json")))

    assert type(memory) is InMemoryKeyValueStore
    assert isinstance(file_store, JsonFileKeyValueStore)


def test_file_store_failed_set_leaves_memory_unchanged(tmp_path) -> None:
    path = tmp_path / "store.json"
    store = JsonFileKeyValueStore(path)
    store.set("k", "old")

    with patch("jobguard.adapters.storage.file.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(StorageAppError) as exc_info:
            store.set("k", "new")
        with pytest.raises(StorageAppError):
            store.set("other", "x")

    assert exc_info.value.code == "storage_write_failed"
    assert store.get("k") == "old"
    assert store.get("other") is None
    assert JsonFileKeyValueStore(path).keys() == ["k"]


def test_file_store_failed_delete_keeps_entry(tmp_path) -> None:
    store = JsonFileKeyValueStore(tmp_path / "store.json")
    store.set("k", "v")

    with patch("jobguard.adapters.storage.file.os.replace", side_effect=OSError("read-only")):
        with pytest.raises(StorageAppError):
            store.delete("k")

    assert store.get("k") == "v"


def test_cache_write_dropped_on_flush_failure_is_not_served(tmp_path, clock) -> None:
    store = JsonFileKeyValueStore(tmp_path / "store.json")
    cache = TTLCache(store, clock=clock)

    with patch("jobguard.adapters.storage.file.os.replace", side_effect=OSError):
        cache.set_in_cache("k", CacheType.OFFERS_LIST, {"a": 1})

    assert cache.get_from_cache("k", CacheType.OFFERS_LIST) is None
    assert JsonFileKeyValueStore(tmp_path / "store.json").keys() == []


def test_file_store_larger_than_quota_loads_what_fits(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text(json.dumps({"a": "1234", "b": "5678"}), encoding="utf-8")

    store = JsonFileKeyValueStore(path, quota_bytes=6)

    assert store.keys() == ["a"]
    assert store.used_bytes == 5
