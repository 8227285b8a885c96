import threading

import pytest

from cache import CacheKeys, CacheStore, CacheTTL


def test_get_returns_value_within_ttl(cache, clock):
    cache.set("k", {"v": 1}, ttl=60)
    clock.advance(30)
    assert cache.get("k") == {"v": 1}


def test_get_after_ttl_is_absent_and_evicted(cache, clock):
    cache.set("k", "v", ttl=60)
    clock.advance(61)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_set_replaces_value_and_restarts_ttl(cache, clock):
    cache.set("k", "old", ttl=10)
    clock.advance(8)
    cache.set("k", "new", ttl=10)
    clock.advance(8)
    assert cache.get("k") == "new"


def test_invalidate_missing_key_is_noop(cache):
    cache.invalidate("nothing-here")
    assert len(cache) == 0


def test_invalidate_prefix_only_touches_matching_keys(cache):
    cache.set("articles:a", 1, ttl=60)
    cache.set("articles:b", 2, ttl=60)
    cache.set("sources", 3, ttl=60)

    assert cache.invalidate_prefix("articles:") == 2
    assert cache.get("articles:a") is None
    assert cache.get("articles:b") is None
    assert cache.get("sources") == 3


def test_invalidate_prefix_with_no_match(cache):
    cache.set("sources", 3, ttl=60)
    assert cache.invalidate_prefix("articles:") == 0
    assert "sources" in cache


def test_get_or_set_loads_once_until_expiry(cache, clock):
    calls = []

    def loader():
        calls.append(1)
        return {"n": len(calls)}

    assert cache.get_or_set("k", 30, loader) == {"n": 1}
    assert cache.get_or_set("k", 30, loader) == {"n": 1}
    clock.advance(31)
    assert cache.get_or_set("k", 30, loader) == {"n": 2}
    assert len(calls) == 2


def test_default_clock_is_monotonic():
    c = CacheStore()
    c.set("k", "v", ttl=60)
    assert c.get("k") == "v"


def test_ttl_defaults_and_overrides():
    assert CacheTTL() == CacheTTL(sources=60, categories=300, articles=30)
    ttl = CacheTTL.from_config({"ttl_seconds": {"articles": 5}})
    assert ttl.articles == 5
    assert ttl.sources == 60
    assert CacheTTL.from_config({}) == CacheTTL()


def test_keys_share_the_articles_prefix():
    assert CacheKeys.ARTICLES_PREFIX.startswith("api:")
    assert not CacheKeys.SOURCES.startswith(CacheKeys.ARTICLES_PREFIX)
    assert not CacheKeys.CATEGORIES.startswith(CacheKeys.ARTICLES_PREFIX)


def test_read_through_reports_hit_and_miss(cache):
    assert cache.read_through("k", 30, lambda: "v") == ("v", False)
    assert cache.read_through("k", 30, lambda: "other") == ("v", True)


def test_read_through_loader_error_stores_nothing(cache):
    def broken():
        raise RuntimeError("store down")

    with pytest.raises(RuntimeError):
        cache.read_through("k", 30, broken)
    assert "k" not in cache


def test_concurrent_set_get_and_prefix_invalidation():
    c = CacheStore()
    errors = []
    start = threading.Barrier(8)

    def worker(n):
        try:
            start.wait()
            for i in range(500):
                c.set(f"articles:{n}:{i % 10}", i, ttl=60)
                c.get(f"articles:{(n + 1) % 8}:{i % 10}")
                c.get_or_set(f"sources:{n}", 60, lambda: n)
                if i % 50 == 0:
                    c.invalidate_prefix("articles:")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    for n in range(8):
        assert c.get(f"sources:{n}") == n
    c.invalidate_prefix("articles:")
    assert len(c) == 8
