import pytest

import webapp
from appcommon.services import build_services
from cache import CacheKeys
from conftest import FakeSummarizer, make_article
from persistence import StoreError
from translation import TranslationError

SECRET = "s3cret"
BEARER = {"Authorization": f"Bearer {SECRET}"}
SAME_ORIGIN = {"Origin": "http://localhost"}
CROSS_ORIGIN = {"Origin": "https://evil.example"}


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def services(sqlite_store, cache, summarizer, monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)
    config = {
        "auth": {"cron_secret": SECRET},
        "summarize": {"item_delay_s": 0, "max_batch_size": 100},
    }
    return build_services(
        config, store=sqlite_store, cache=cache, summarizer_factory=lambda: summarizer
    )


@pytest.fixture
def client(services):
    app = webapp.create_app(services=services)
    app.config["TESTING"] = True
    return app.test_client()


# ---- status


def test_status_idle(client):
    resp = client.get("/api/crawl/status")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["isRunning"] is False
    assert body["lastRun"] is None
    assert body["recentRuns"] == []


def test_status_store_failure_is_500(client, sqlite_store, monkeypatch):
    def boom(*a, **kw):
        raise StoreError("disk I/O error")

    monkeypatch.setattr(sqlite_store, "list_recent_runs", boom)
    resp = client.get("/api/crawl/status")
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to fetch crawl status"}


def test_status_is_never_cached(client, sqlite_store):
    assert client.get("/api/crawl/status").get_json()["isRunning"] is False
    sqlite_store.create_run(1)
    assert client.get("/api/crawl/status").get_json()["isRunning"] is True


# ---- batch summarize


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer nope"}, SAME_ORIGIN])
def test_batch_requires_bearer(client, summarizer, headers):
    resp = client.post("/api/summarize/batch", headers=headers)
    assert resp.status_code == 401
    assert resp.get_json() == {"error": "Unauthorized"}
    assert summarizer.calls == []


def test_batch_rejects_everything_without_configured_secret(sqlite_store, cache, monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)
    services = build_services({}, store=sqlite_store, cache=cache, summarizer_factory=FakeSummarizer)
    client = webapp.create_app(services=services).test_client()
    resp = client.post("/api/summarize/batch", headers={"Authorization": "Bearer "})
    assert resp.status_code == 401


@pytest.mark.parametrize("size", ["abc", 0, -3, 101, True])
def test_batch_size_validation(client, summarizer, size):
    resp = client.post("/api/summarize/batch", json={"batchSize": size}, headers=BEARER)
    assert resp.status_code == 400
    assert "batchSize" in resp.get_json()["error"]
    assert summarizer.calls == []


def test_batch_summarizes_and_invalidates_article_pages(client, sqlite_store, summarizer):
    for i in range(5):
        sqlite_store.upsert_article(make_article(f"a{i}", crawled_at=1000 + i))
    summarizer.fail_titles = {"Title a0", "Title a2"}

    first = client.get("/api/articles")
    assert first.headers["X-Cache"] == "MISS"
    assert client.get("/api/articles").headers["X-Cache"] == "HIT"

    resp = client.post("/api/summarize/batch?batchSize=5", headers=BEARER)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert (body["processed"], body["succeeded"], body["failed"]) == (5, 3, 2)
    assert len(body["errors"]) == 2

    after = client.get("/api/articles")
    assert after.headers["X-Cache"] == "MISS"
    summaries = {a["id"]: a["ai_summary"] for a in after.get_json()["articles"]}
    assert summaries["a1"] == "Summary of Title a1"
    assert summaries["a0"] is None


def test_batch_keeps_unrelated_cache_entries(client, cache, sqlite_store):
    sqlite_store.upsert_article(make_article("a1"))
    cache.set(CacheKeys.SOURCES, {"sources": []}, ttl=60)
    client.post("/api/summarize/batch", headers=BEARER)
    assert cache.get(CacheKeys.SOURCES) == {"sources": []}


# ---- single summarize


def test_single_summary(client, sqlite_store):
    sqlite_store.upsert_article(make_article("a1"))
    assert client.post("/api/summarize", json={}, headers=BEARER).status_code == 400
    assert client.post("/api/summarize", json={"articleId": "a1"}).status_code == 401

    missing = client.post("/api/summarize", json={"articleId": "nope"}, headers=BEARER)
    assert missing.status_code == 404
    assert missing.get_json() == {"error": "Article not found"}

    ok = client.post("/api/summarize", json={"articleId": "a1"}, headers=BEARER)
    assert ok.status_code == 200
    assert ok.get_json() == {"success": True, "summary": "Summary of Title a1"}


def test_single_summary_failure_is_500(client, sqlite_store, summarizer):
    sqlite_store.upsert_article(make_article("a1"))
    summarizer.fail_titles = {"Title a1"}
    resp = client.post("/api/summarize", json={"articleId": "a1"}, headers=BEARER)
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "model unavailable"}


# ---- articles


def test_delete_article_guards_and_invalidation(client, sqlite_store):
    sqlite_store.upsert_article(make_article("a1"))
    sqlite_store.upsert_article(make_article("a2"))
    assert client.get("/api/articles").get_json()["total"] == 2

    assert client.delete("/api/articles/a1").status_code == 401
    assert client.delete("/api/articles/a1", headers=CROSS_ORIGIN).status_code == 401
    assert client.get("/api/articles").headers["X-Cache"] == "HIT"

    resp = client.delete("/api/articles/a1", headers=SAME_ORIGIN)
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "id": "a1"}
    assert client.get("/api/articles").get_json()["total"] == 1

    assert client.delete("/api/articles/a1", headers=SAME_ORIGIN).status_code == 404
    assert client.delete("/api/articles/a2", headers=BEARER).status_code == 200


def test_delete_missing_article_keeps_cache(client, cache):
    key = CacheKeys.ARTICLES_PREFIX + "page=1"
    cache.set(key, {"articles": []}, ttl=30)
    assert client.delete("/api/articles/nope", headers=BEARER).status_code == 404
    assert cache.get(key) == {"articles": []}


def test_article_query_params(client, sqlite_store):
    for i in range(3):
        sqlite_store.upsert_article(make_article(f"a{i}", published_at=100 + i, source_name=f"S{i % 2}"))

    page = client.get("/api/articles?limit=500").get_json()
    assert page["limit"] == 50
    assert page["hasMore"] is False

    only = client.get("/api/articles?source=S1").get_json()
    assert [a["id"] for a in only["articles"]] == ["a1"]

    assert client.get("/api/articles?page=0").status_code == 400
    assert client.get("/api/articles?limit=abc").status_code == 400


def test_article_source_names(client, sqlite_store):
    sqlite_store.upsert_article(make_article("a1", source_name="Wired"))
    sqlite_store.upsert_article(make_article("a2", source_name="Brunch"))
    assert client.get("/api/articles/sources").get_json() == {"sources": ["Brunch", "Wired"]}


# ---- sources & categories


def test_sources_write_invalidates_listing(client):
    assert client.get("/api/sources").get_json() == {"sources": []}

    assert client.post("/api/sources", json={"sources": "x"}, headers=SAME_ORIGIN).status_code == 400
    assert client.post("/api/sources", json={"sources": []}).status_code == 401

    resp = client.post(
        "/api/sources",
        json={"sources": [{"url": "https://www.brunch.co.kr", "category": "biz"}]},
        headers=SAME_ORIGIN,
    )
    assert resp.status_code == 200
    listed = client.get("/api/sources").get_json()["sources"]
    assert [s["name"] for s in listed] == ["Brunch"]


def test_categories_defaults_and_create(client):
    defaults = client.get("/api/categories").get_json()["categories"]
    assert [c["name"] for c in defaults] == webapp.DEFAULT_CATEGORIES

    resp = client.post("/api/categories", json={"name": "Tech"}, headers=SAME_ORIGIN)
    assert resp.status_code == 200
    assert resp.get_json()["category"]["name"] == "Tech"

    names = [c["name"] for c in client.get("/api/categories").get_json()["categories"]]
    assert names == ["Tech"]

    dup = client.post("/api/categories", json={"name": "Tech"}, headers=BEARER)
    assert dup.status_code == 409
    assert client.post("/api/categories", json={}, headers=BEARER).status_code == 400
    assert client.post("/api/categories", json={"name": "X"}, headers=CROSS_ORIGIN).status_code == 401


def test_categories_fall_back_to_defaults_when_store_fails(client, sqlite_store, monkeypatch):
    def boom():
        raise StoreError("no such table")

    monkeypatch.setattr(sqlite_store, "list_categories", boom)
    resp = client.get("/api/categories")
    assert resp.status_code == 200
    assert len(resp.get_json()["categories"]) == len(webapp.DEFAULT_CATEGORIES)


# ---- translate


def test_translate_validation(client, monkeypatch):
    monkeypatch.delenv("DEEPL_API_KEY", raising=False)
    assert client.post("/api/translate", json={"targetLang": "EN"}).status_code == 400
    assert client.post("/api/translate", json={"texts": ["a"]}).status_code == 400
    resp = client.post("/api/translate", json={"texts": ["a"], "targetLang": "EN"})
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "DEEPL_API_KEY not configured"}


def test_translate_proxies_upstream(client, monkeypatch):
    monkeypatch.setenv("DEEPL_API_KEY", "k")
    calls = []

    async def fake_translate(texts, target_lang, source_lang, **kw):
        calls.append((texts, target_lang, source_lang))
        return [t.upper() for t in texts]

    monkeypatch.setattr(webapp, "translate_texts", fake_translate)
    resp = client.post("/api/translate", json={"texts": ["hi", "yo"], "targetLang": "EN"})
    assert resp.status_code == 200
    assert resp.get_json() == {"translations": ["HI", "YO"]}
    assert calls == [(["hi", "yo"], "EN", "KO")]


def test_translate_upstream_status_is_propagated(client, monkeypatch):
    monkeypatch.setenv("DEEPL_API_KEY", "k")

    async def quota_exceeded(*a, **kw):
        raise TranslationError(456, "DeepL API error: 456")

    monkeypatch.setattr(webapp, "translate_texts", quota_exceeded)
    resp = client.post("/api/translate", json={"texts": ["hi"], "targetLang": "EN"})
    assert resp.status_code == 456
    assert resp.get_json() == {"error": "DeepL API error: 456"}


# ---- misc


def test_unknown_route_is_json_404(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert "error" in resp.get_json()
