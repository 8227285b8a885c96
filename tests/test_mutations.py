import pytest

from appcommon.errors import Conflict, NotFound, ValidationError
from cache import CacheKeys, MutationEvents, wire_cache
from conftest import make_article
from persistence import StoreError
from persistence.mutations import StoreMutations, domain_label, infer_crawler_type


@pytest.fixture
def events():
    return MutationEvents()


@pytest.fixture
def seen(events):
    out = []
    events.subscribe(out.append)
    return out


@pytest.fixture
def mutations(sqlite_store, events):
    return StoreMutations(sqlite_store, events)


def test_delete_missing_article_is_not_found_and_keeps_cache(sqlite_store, events, cache):
    wire_cache(events, cache)
    cache.set(CacheKeys.ARTICLES_PREFIX + "page=1", "cached", ttl=30)

    with pytest.raises(NotFound):
        StoreMutations(sqlite_store, events).delete_article("nope")

    assert cache.get(CacheKeys.ARTICLES_PREFIX + "page=1") == "cached"


def test_delete_article_soft_deletes_and_invalidates(sqlite_store, events, cache):
    wire_cache(events, cache)
    sqlite_store.upsert_article(make_article("a1"))
    cache.set(CacheKeys.ARTICLES_PREFIX + "page=1", "cached", ttl=30)
    cache.set(CacheKeys.SOURCES, "sources", ttl=60)

    StoreMutations(sqlite_store, events).delete_article("a1")

    assert sqlite_store.get_article("a1").is_active is False
    assert cache.get(CacheKeys.ARTICLES_PREFIX + "page=1") is None
    assert cache.get(CacheKeys.SOURCES) == "sources"


def test_write_summary_publishes_after_write(sqlite_store, mutations, seen):
    sqlite_store.upsert_article(make_article("a1"))
    mutations.write_summary("a1", ai_summary="s", summary_tags=["t"], summary=None)
    assert sqlite_store.get_article("a1").ai_summary == "s"
    assert [m.value for m in seen] == ["summary_written"]

    with pytest.raises(NotFound):
        mutations.write_summary("missing", ai_summary="s", summary_tags=[], summary=None)
    assert len(seen) == 1


def test_save_sources_upserts_by_url(sqlite_store, mutations, seen):
    saved = mutations.save_sources(
        [
            {"url": "https://www.brunch.co.kr/@news", "category": "biz"},
            {"url": "https://example.com/rss", "name": "Example"},
            {"url": ""},
        ]
    )
    assert [s.name for s in saved] == ["Brunch", "Example"]
    assert saved[1].crawler_type == "rss"
    assert len(seen) == 1

    again = mutations.save_sources([{"url": "https://www.brunch.co.kr/@news", "name": "Brunch Biz"}])
    assert again[0].id == saved[0].id
    assert len(sqlite_store.list_crawl_sources()) == 2


def test_save_sources_rejects_non_objects(mutations, seen):
    with pytest.raises(ValidationError):
        mutations.save_sources(["https://example.com"])
    assert seen == []


def test_save_sources_with_nothing_to_save_publishes_nothing(mutations, seen):
    assert mutations.save_sources([{"name": "no url"}]) == []
    assert seen == []


def test_add_category(mutations, seen):
    cat = mutations.add_category("  Tech ")
    assert cat.name == "Tech"
    assert [m.value for m in seen] == ["categories_changed"]

    with pytest.raises(Conflict):
        mutations.add_category("Tech")
    with pytest.raises(ValidationError):
        mutations.add_category("   ")
    assert len(seen) == 1


@pytest.mark.parametrize(
    "url, label",
    [
        ("https://www.brunch.co.kr/x", "Brunch"),
        ("https://news.ycombinator.com", "News"),
        ("not-a-url", "not-a-url"),
    ],
)
def test_domain_label(url, label):
    assert domain_label(url) == label


@pytest.mark.parametrize(
    "url, kind",
    [
        ("https://example.com/feed.xml", "rss"),
        ("https://example.com/sitemap_index", "sitemap"),
        ("https://example.com/blog", "auto"),
    ],
)
def test_infer_crawler_type(url, kind):
    assert infer_crawler_type(url) == kind


def test_invalid_entry_rejects_whole_list_before_any_write(sqlite_store, events, cache):
    wire_cache(events, cache)
    cache.set(CacheKeys.SOURCES, {"sources": []}, ttl=60)

    with pytest.raises(ValidationError):
        StoreMutations(sqlite_store, events).save_sources([{"url": "https://a.com/rss"}, "junk"])

    assert sqlite_store.list_crawl_sources() == []
    assert cache.get(CacheKeys.SOURCES) == {"sources": []}


def test_store_failure_mid_list_still_invalidates_saved_rows(sqlite_store, events, cache, monkeypatch):
    wire_cache(events, cache)
    cache.set(CacheKeys.SOURCES, {"sources": []}, ttl=60)
    real_save = sqlite_store.save_crawl_source

    def save_then_fail(source):
        if source.base_url == "https://b.com":
            raise StoreError("disk full")
        return real_save(source)

    monkeypatch.setattr(sqlite_store, "save_crawl_source", save_then_fail)

    with pytest.raises(StoreError):
        StoreMutations(sqlite_store, events).save_sources(
            [{"url": "https://a.com"}, {"url": "https://b.com"}]
        )

    assert [s.base_url for s in sqlite_store.list_crawl_sources()] == ["https://a.com"]
    assert cache.get(CacheKeys.SOURCES) is None
