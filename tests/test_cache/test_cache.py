"""Tests for the ParseCache module."""

from __future__ import annotations

import time

import pytest

from specmaster.cache import ParseCache
from specmaster.models import CacheConfig, StreamOptions, StreamResult


@pytest.fixture()
def cache(tmp_path):
    """Create a ParseCache with default config pointing at tmp_path."""
    config = CacheConfig(enabled=True, ttl_seconds=300)
    c = ParseCache(tmp_path, config)
    yield c
    c.close()


@pytest.fixture()
def disabled_cache(tmp_path):
    """Create a disabled ParseCache."""
    config = CacheConfig(enabled=False, ttl_seconds=300)
    c = ParseCache(tmp_path, config)
    yield c
    c.close()


# ------------------------------------------------------------------ #
# Keys
# ------------------------------------------------------------------ #


class TestKeys:
    def test_text_key_is_stable(self) -> None:
        options = StreamOptions()
        assert ParseCache.text_key("{}", options) == ParseCache.text_key("{}", options)

    def test_text_key_depends_on_text_and_options(self) -> None:
        base = ParseCache.text_key("{}", StreamOptions())
        assert ParseCache.text_key("[]", StreamOptions()) != base
        assert ParseCache.text_key("{}", StreamOptions(chunk_size=10)) != base

    def test_file_key_follows_content_changes(self, tmp_path) -> None:
        path = tmp_path / "spec.json"
        path.write_text("{}", encoding="utf-8")
        first = ParseCache.file_key(path, StreamOptions())
        assert ParseCache.file_key(str(path), StreamOptions()) == first

        path.write_text('{"info": {}}', encoding="utf-8")
        assert ParseCache.file_key(path, StreamOptions()) != first

    def test_file_key_depends_on_options(self, petstore_json_path) -> None:
        assert ParseCache.file_key(petstore_json_path, StreamOptions()) != ParseCache.file_key(
            petstore_json_path, StreamOptions(enable_compression=True)
        )

    def test_file_key_missing_file(self, tmp_path) -> None:
        with pytest.raises(OSError):
            ParseCache.file_key(tmp_path / "missing.json", StreamOptions())


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_set_and_get_roundtrip(self, cache: ParseCache, petstore_result: StreamResult) -> None:
        """A stored result comes back equal to the original."""
        cache.set("k", petstore_result)
        cached = cache.get("k")
        assert cached is not None
        assert cached == petstore_result
        assert cached.spec.title == "Petstore"
        assert len(cached.endpoints) == 6

    def test_cache_miss_returns_none(self, cache: ParseCache) -> None:
        assert cache.get("never-stored") is None

    def test_invalid_entry_is_dropped(self, cache: ParseCache) -> None:
        """An entry that no longer validates is reported as a miss and deleted."""
        cache._cache.set("bad", {"spec": "not a spec"})
        assert cache.get("bad") is None
        assert "bad" not in cache._cache


# ------------------------------------------------------------------ #
# TTL expiry
# ------------------------------------------------------------------ #


class TestTTL:
    def test_ttl_expiry(self, tmp_path, petstore_result: StreamResult) -> None:
        """Entries expire after ttl_seconds."""
        c = ParseCache(tmp_path, CacheConfig(enabled=True, ttl_seconds=1))
        try:
            c.set("k", petstore_result)
            assert c.get("k") is not None
            time.sleep(1.5)
            assert c.get("k") is None
        finally:
            c.close()


# ------------------------------------------------------------------ #
# Disabled cache
# ------------------------------------------------------------------ #


class TestDisabled:
    def test_disabled_set_is_noop(self, disabled_cache: ParseCache, petstore_result: StreamResult) -> None:
        assert not disabled_cache.enabled
        disabled_cache.set("k", petstore_result)
        assert disabled_cache.get("k") is None

    def test_disabled_stats(self, disabled_cache: ParseCache) -> None:
        assert disabled_cache.stats() == {"enabled": False}

    def test_disabled_creates_no_directory(self, disabled_cache: ParseCache, tmp_path) -> None:
        assert not (tmp_path / "results").exists()

    def test_disabled_clear_and_invalidate(self, disabled_cache: ParseCache) -> None:
        disabled_cache.invalidate("k")
        disabled_cache.clear()


# ------------------------------------------------------------------ #
# Invalidate, clear and stats
# ------------------------------------------------------------------ #


class TestInvalidateAndClear:
    def test_invalidate_removes_specific_entry(
        self, cache: ParseCache, petstore_result: StreamResult
    ) -> None:
        cache.set("a", petstore_result)
        cache.set("b", petstore_result)
        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") is not None

    def test_clear_removes_all_entries(self, cache: ParseCache, petstore_result: StreamResult) -> None:
        cache.set("a", petstore_result)
        cache.set("b", petstore_result)
        cache.clear()
        assert cache.stats()["size"] == 0

    def test_invalidate_nonexistent_key_no_error(self, cache: ParseCache) -> None:
        cache.invalidate("nope")


class TestStats:
    def test_stats(self, cache: ParseCache, petstore_result: StreamResult, tmp_path) -> None:
        assert cache.stats()["size"] == 0
        cache.set("a", petstore_result)
        assert cache.stats() == {
            "enabled": True,
            "size": 1,
            "directory": str(tmp_path / "results"),
            "ttl_seconds": 300,
        }
