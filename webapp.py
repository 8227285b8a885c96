from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Callable, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from appcommon import load_config, section
from appcommon.auth import verify_bearer, verify_same_origin
from appcommon.errors import AppError, Unauthorized, ValidationError
from appcommon.services import Services, build_services
from cache import CacheKeys
from persistence import StoreError
from persistence.models import ArticleQuery
from summarizer.batch import FailureReason, Failed
from summarizer.helpers import setup_logging
from translation import DEEPL_FREE_ENDPOINT, TranslationError, translate_texts

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

MAX_PAGE_LIMIT = 50
DEFAULT_CATEGORIES = ["Business", "Consumer Trends"]


def _services() -> Services:
    return current_app.extensions["insighthub"]


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _int_arg(raw: Any, name: str, default: int, *, minimum: int = 1, maximum: Optional[int] = None) -> int:
    if raw is None or raw == "":
        return default
    if isinstance(raw, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be <= {maximum}")
    return value


def _cached_response(key: str, ttl: float, loader: Callable[[], Any]):
    payload, hit = _services().cache.read_through(key, ttl, loader)
    resp = jsonify(payload)
    resp.headers["X-Cache"] = "HIT" if hit else "MISS"
    return resp


# ----------------------------
# Guards
# ----------------------------
def require_bearer() -> None:
    if not verify_bearer(request.headers, _services().cron_secret):
        raise Unauthorized()


def require_browser_or_bearer() -> None:
    # same-origin for the browser UI, bearer for scripts; each checked on its own
    if verify_same_origin(request.headers):
        return
    if verify_bearer(request.headers, _services().cron_secret):
        return
    raise Unauthorized()


# ----------------------------
# Crawl status
# ----------------------------
@api.get("/crawl/status")
def crawl_status():
    return jsonify(_services().status.get_status().to_dict())


# ----------------------------
# Summaries
# ----------------------------
@api.post("/summarize/batch")
def summarize_batch():
    require_bearer()
    svc = _services()
    s_cfg = section(svc.config, "summarize")
    raw = _json_body().get("batchSize", request.args.get("batchSize"))
    batch_size = _int_arg(
        raw,
        "batchSize",
        int(s_cfg.get("batch_size", 20)),
        maximum=int(s_cfg.get("max_batch_size", 100)),
    )

    result = asyncio.run(svc.orchestrator().process_pending_summaries(batch_size))
    return jsonify({"ok": True, **result.to_dict()})


@api.post("/summarize")
def summarize_article():
    require_bearer()
    article_id = str(_json_body().get("articleId") or "").strip()
    if not article_id:
        raise ValidationError("articleId is required")

    outcome = asyncio.run(_services().orchestrator().process_article_summary(article_id))
    if isinstance(outcome, Failed):
        status = 404 if outcome.reason == FailureReason.NOT_FOUND else 500
        return jsonify({"error": outcome.message or "Failed to generate summary"}), status
    return jsonify(outcome.to_dict())


# ----------------------------
# Articles
# ----------------------------
@api.get("/articles")
def list_articles():
    svc = _services()
    query = ArticleQuery(
        page=_int_arg(request.args.get("page"), "page", 1),
        limit=min(_int_arg(request.args.get("limit"), "limit", 12), MAX_PAGE_LIMIT),
        search=(request.args.get("search") or "").strip(),
        category=(request.args.get("category") or "").strip(),
        source=(request.args.get("source") or "").strip(),
    )
    return _cached_response(
        CacheKeys.ARTICLES_PREFIX + query.canonical(),
        svc.ttl.articles,
        lambda: svc.store.list_articles(query).to_dict(),
    )


@api.get("/articles/sources")
def list_article_sources():
    svc = _services()
    # derived from articles, so it lives under the articles prefix
    return _cached_response(
        CacheKeys.ARTICLES_PREFIX + "source_names",
        svc.ttl.articles,
        lambda: {"sources": svc.store.list_source_names()},
    )


@api.delete("/articles/<article_id>")
def delete_article(article_id: str):
    require_browser_or_bearer()
    _services().mutations.delete_article(article_id)
    return jsonify({"success": True, "id": article_id})


# ----------------------------
# Crawl sources
# ----------------------------
@api.get("/sources")
def list_sources():
    svc = _services()
    return _cached_response(
        CacheKeys.SOURCES,
        svc.ttl.sources,
        lambda: {"sources": [s.to_dict() for s in svc.store.list_crawl_sources()]},
    )


@api.post("/sources")
def save_sources():
    require_browser_or_bearer()
    sources = _json_body().get("sources")
    if not isinstance(sources, list):
        raise ValidationError("Invalid sources data")
    saved = _services().mutations.save_sources(sources)
    return jsonify({"success": True, "sources": [s.to_dict() for s in saved]})


# ----------------------------
# Categories
# ----------------------------
def _default_categories() -> Dict[str, Any]:
    names = section(_services().config, "categories").get("defaults") or DEFAULT_CATEGORIES
    return {
        "categories": [
            {"id": i + 1, "name": str(name), "is_default": True} for i, name in enumerate(names)
        ]
    }


def _load_categories() -> Dict[str, Any]:
    cats = _services().store.list_categories()
    if not cats:
        return _default_categories()
    return {"categories": [c.to_dict() for c in cats]}


@api.get("/categories")
def list_categories():
    svc = _services()
    try:
        return _cached_response(CacheKeys.CATEGORIES, svc.ttl.categories, _load_categories)
    except StoreError as e:
        # categories are decoration; an unreadable table falls back to defaults (uncached)
        logger.warning("Categories unavailable, using defaults: %s", e)
        return jsonify(_default_categories())


@api.post("/categories")
def add_category():
    require_browser_or_bearer()
    name = _json_body().get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError("Category name is required")
    category = _services().mutations.add_category(name)
    return jsonify({"category": category.to_dict()})


# ----------------------------
# Translation proxy
# ----------------------------
@api.post("/translate")
def translate():
    body = _json_body()
    texts = body.get("texts")
    target_lang = str(body.get("targetLang") or "").strip()
    t_cfg = section(_services().config, "translate")
    source_lang = str(body.get("sourceLang") or t_cfg.get("default_source_lang") or "KO")

    if not isinstance(texts, list) or not texts:
        raise ValidationError("texts array is required")
    if not target_lang:
        raise ValidationError("targetLang is required")

    api_key = str(t_cfg.get("api_key") or os.environ.get("DEEPL_API_KEY", "")).strip()
    if not api_key:
        return jsonify({"error": "DEEPL_API_KEY not configured"}), 500

    try:
        translations = asyncio.run(
            translate_texts(
                [str(t) for t in texts],
                target_lang,
                source_lang,
                api_key=api_key,
                endpoint=str(t_cfg.get("endpoint") or DEEPL_FREE_ENDPOINT),
            )
        )
    except TranslationError as e:
        return jsonify({"error": e.message}), e.status
    return jsonify({"translations": translations})


# ----------------------------
# App
# ----------------------------
def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def _app_error(e: AppError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(StoreError)
    def _store_error(e: StoreError):
        logger.error("Store error: %s", e)
        return jsonify({"error": "Storage unavailable"}), 500

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        logger.exception("Unhandled error: %s", e)
        return jsonify({"error": "Internal server error"}), 500


def create_app(config: Optional[Dict[str, Any]] = None, *, services: Optional[Services] = None) -> Flask:
    app = Flask(__name__)
    app.json.ensure_ascii = False  # type: ignore[attr-defined]
    if services is None:
        services = build_services(config if config is not None else load_config())
    app.extensions["insighthub"] = services
    app.register_blueprint(api)
    _register_error_handlers(app)
    return app


if __name__ == "__main__":
    setup_logging()
    create_app().run(host="127.0.0.1", port=5000, debug=True, use_reloader=False)
