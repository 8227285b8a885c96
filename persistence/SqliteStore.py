# LICENSE HEADER MANAGED BY add-license-header
#
# BSD 3-Clause License
#
# Copyright (c) 2026, Martin Vesterlund
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions and the following disclaimer.
#
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# 3. Neither the name of the copyright holder nor the names of its
#    contributors may be used to endorse or promote products derived from
#    this software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
#

from __future__ import annotations

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from persistence import StoreError
from persistence.models import (
    RUN_COMPLETED,
    RUN_RUNNING,
    Article,
    ArticlePage,
    ArticleQuery,
    Category,
    CrawlSource,
    IngestionRun,
)

logger = logging.getLogger(__name__)


def _now_ts() -> int:
    return int(time.time())


def _safe_int(v: Any, default: int = 0) -> int:
    try:
        if v is None:
            return default
        return int(v)
    except (TypeError, ValueError):
        return default


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def _json_loads(s: Optional[str]) -> Any:
    if not s:
        return None
    try:
        return json.loads(s)
    except (TypeError, ValueError):
        return None


_ARTICLE_COLS = (
    "id",
    "title",
    "source_id",
    "source_name",
    "source_url",
    "thumbnail_url",
    "content_preview",
    "summary",
    "ai_summary",
    "summary_tags",
    "author",
    "category",
    "published_at",
    "crawled_at",
    "priority",
    "is_active",
    "created_at",
    "updated_at",
)

_RUN_COLS = (
    "started_at",
    "finished_at",
    "status",
    "articles_found",
    "articles_new",
    "error_message",
)

_RUN_SELECT = """
    SELECT r.id, r.source_id, r.status, r.started_at, r.finished_at,
           r.articles_found, r.articles_new, r.error_message,
           s.name AS source_name
    FROM crawl_runs r
    LEFT JOIN crawl_sources s ON s.id = r.source_id
"""


def _article(row: sqlite3.Row) -> Article:
    d = dict(row)
    d["summary_tags"] = _json_loads(d.get("summary_tags")) or []
    return Article.from_row(d)


def _source(row: sqlite3.Row) -> CrawlSource:
    d = dict(row)
    d["config"] = _json_loads(d.get("config")) or {}
    return CrawlSource.from_row(d)


class SqliteStore:
    """
    SQLite-backed store.

    One connection per call. Every sqlite3 error leaves this class as StoreError
    so callers only deal with one failure type.
    """

    def __init__(
        self,
        path: str = "insighthub.sqlite",
        *,
        pragmas: Optional[Dict[str, str]] = None,
    ):
        self.path = str(Path(path))
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._pragmas = pragmas or {
            "journal_mode": "WAL",
            "synchronous": "NORMAL",
            "temp_store": "MEMORY",
            "foreign_keys": "ON",
        }
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(self.path)
        con.row_factory = sqlite3.Row
        for k, v in self._pragmas.items():
            try:
                con.execute(f"PRAGMA {k}={v}")
            except sqlite3.Error:
                pass
        return con

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            con = self._connect()
        except sqlite3.Error as e:
            raise StoreError(f"sqlite connect failed: {e}") from e
        try:
            yield con
            con.commit()
        except sqlite3.Error as e:
            con.rollback()
            logger.error("sqlite error: %s", e)
            raise StoreError(str(e)) from e
        finally:
            con.close()

    def _init_db(self) -> None:
        with self._session() as con:
            con.executescript(
                """
                CREATE TABLE IF NOT EXISTS crawl_sources (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    name            TEXT NOT NULL,
                    base_url        TEXT NOT NULL UNIQUE,
                    crawler_type    TEXT DEFAULT 'auto',
                    config          TEXT,
                    priority        INTEGER DEFAULT 1,
                    is_active       INTEGER DEFAULT 1,
                    last_crawled_at INTEGER,
                    created_at      INTEGER
                );

                CREATE TABLE IF NOT EXISTS articles (
                    id              TEXT PRIMARY KEY,
                    title           TEXT NOT NULL,
                    source_id       TEXT,
                    source_name     TEXT,
                    source_url      TEXT,
                    thumbnail_url   TEXT,
                    content_preview TEXT,
                    summary         TEXT,
                    ai_summary      TEXT,
                    summary_tags    TEXT,
                    author          TEXT,
                    category        TEXT,
                    published_at    INTEGER,
                    crawled_at      INTEGER,
                    priority        INTEGER DEFAULT 0,
                    is_active       INTEGER DEFAULT 1,
                    created_at      INTEGER,
                    updated_at      INTEGER
                );

                CREATE INDEX IF NOT EXISTS idx_articles_pending
                  ON articles(is_active, ai_summary, crawled_at);

                CREATE INDEX IF NOT EXISTS idx_articles_published
                  ON articles(published_at, crawled_at);

                CREATE TABLE IF NOT EXISTS crawl_runs (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    source_id      INTEGER,
                    status         TEXT NOT NULL,
                    started_at     INTEGER NOT NULL,
                    finished_at    INTEGER,
                    articles_found INTEGER DEFAULT 0,
                    articles_new   INTEGER DEFAULT 0,
                    error_message  TEXT
                );

                CREATE INDEX IF NOT EXISTS idx_crawl_runs_status
                  ON crawl_runs(status, finished_at);

                CREATE INDEX IF NOT EXISTS idx_crawl_runs_started
                  ON crawl_runs(started_at);

                CREATE TABLE IF NOT EXISTS categories (
                    id         INTEGER PRIMARY KEY AUTOINCREMENT,
                    name       TEXT NOT NULL UNIQUE,
                    is_default INTEGER DEFAULT 0
                );
                """
            )

    # ---- Articles
    def get_article(self, article_id: str) -> Optional[Article]:
        with self._session() as con:
            row = con.execute(
                "SELECT * FROM articles WHERE id = ?", (str(article_id),)
            ).fetchone()
        return _article(row) if row else None

    def upsert_article(self, article: Article) -> None:
        if not article.id:
            raise ValueError("article must have an id")
        now = _now_ts()
        values = {c: getattr(article, c) for c in _ARTICLE_COLS}
        values["summary_tags"] = _json_dumps(list(article.summary_tags or []))
        values["is_active"] = 1 if article.is_active else 0
        values["crawled_at"] = article.crawled_at or now
        values["created_at"] = article.created_at or now
        values["updated_at"] = now

        cols = ", ".join(_ARTICLE_COLS)
        marks = ", ".join(["?"] * len(_ARTICLE_COLS))
        updates = ", ".join(f"{c}=excluded.{c}" for c in _ARTICLE_COLS if c not in ("id", "created_at"))
        with self._session() as con:
            con.execute(
                f"""
                INSERT INTO articles ({cols}) VALUES ({marks})
                ON CONFLICT(id) DO UPDATE SET {updates}
                """,
                tuple(values[c] for c in _ARTICLE_COLS),
            )

    def list_articles(self, query: ArticleQuery) -> ArticlePage:
        where = ["is_active = 1"]
        params: List[Any] = []
        if query.search:
            like = f"%{query.search}%"
            where.append("(title LIKE ? OR summary LIKE ? OR content_preview LIKE ?)")
            params.extend([like, like, like])
        if query.category:
            where.append("category = ?")
            params.append(query.category)
        if query.source:
            where.append("source_name = ?")
            params.append(query.source)
        where_sql = " AND ".join(where)

        with self._session() as con:
            total = con.execute(
                f"SELECT COUNT(*) FROM articles WHERE {where_sql}", tuple(params)
            ).fetchone()[0]
            rows = con.execute(
                f"""
                SELECT * FROM articles
                WHERE {where_sql}
                ORDER BY published_at IS NULL, published_at DESC, crawled_at DESC, id
                LIMIT ? OFFSET ?
                """,
                tuple(params + [query.limit, query.offset]),
            ).fetchall()
        return ArticlePage(
            articles=[_article(r) for r in rows],
            total=int(total),
            page=query.page,
            limit=query.limit,
        )

    def list_source_names(self) -> List[str]:
        with self._session() as con:
            rows = con.execute(
                """
                SELECT DISTINCT source_name FROM articles
                WHERE is_active = 1 AND source_name IS NOT NULL AND source_name != ''
                ORDER BY source_name
                """
            ).fetchall()
        return [r["source_name"] for r in rows]

    def list_pending_summaries(self, limit: int = 20) -> List[Article]:
        with self._session() as con:
            rows = con.execute(
                """
                SELECT * FROM articles
                WHERE ai_summary IS NULL AND is_active = 1
                ORDER BY crawled_at DESC, id
                LIMIT ?
                """,
                (_safe_int(limit, 20),),
            ).fetchall()
        return [_article(r) for r in rows]

    def update_article_summary(
        self,
        article_id: str,
        *,
        ai_summary: str,
        summary_tags: List[str],
        summary: Optional[str],
    ) -> bool:
        with self._session() as con:
            cur = con.execute(
                """
                UPDATE articles
                SET ai_summary = ?, summary_tags = ?, summary = ?, updated_at = ?
                WHERE id = ?
                """,
                (ai_summary, _json_dumps(list(summary_tags or [])), summary, _now_ts(), str(article_id)),
            )
            return cur.rowcount > 0

    def deactivate_article(self, article_id: str) -> bool:
        with self._session() as con:
            cur = con.execute(
                "UPDATE articles SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
                (_now_ts(), str(article_id)),
            )
            return cur.rowcount > 0

    # ---- Crawl runs
    def create_run(self, source_id: int, *, started_at: Optional[int] = None) -> int:
        with self._session() as con:
            cur = con.execute(
                "INSERT INTO crawl_runs (source_id, status, started_at) VALUES (?, ?, ?)",
                (_safe_int(source_id), RUN_RUNNING, started_at or _now_ts()),
            )
            rid = int(cur.lastrowid)  # type: ignore
        logger.info("Crawl run %s created (source=%s)", rid, source_id)
        return rid

    def update_run(self, run_id: int, **fields) -> None:
        unknown = set(fields) - set(_RUN_COLS)
        if unknown:
            raise ValueError(f"unknown crawl run fields: {sorted(unknown)}")
        if not fields:
            return
        set_sql = ", ".join(f"{k} = ?" for k in fields)
        with self._session() as con:
            con.execute(
                f"UPDATE crawl_runs SET {set_sql} WHERE id = ?",
                tuple(fields.values()) + (_safe_int(run_id),),
            )
        logger.info("Crawl run %s updated: %s", run_id, fields)

    def get_run(self, run_id: int) -> Optional[IngestionRun]:
        with self._session() as con:
            row = con.execute(_RUN_SELECT + " WHERE r.id = ?", (_safe_int(run_id),)).fetchone()
        return IngestionRun.from_row(dict(row)) if row else None

    def list_runs_by_status(self, status: str, limit: int = 1) -> List[IngestionRun]:
        with self._session() as con:
            rows = con.execute(
                _RUN_SELECT + " WHERE r.status = ? ORDER BY r.started_at DESC, r.id DESC LIMIT ?",
                (status, _safe_int(limit, 1)),
            ).fetchall()
        return [IngestionRun.from_row(dict(r)) for r in rows]

    def get_last_completed_run(self) -> Optional[IngestionRun]:
        with self._session() as con:
            row = con.execute(
                _RUN_SELECT
                + """
                WHERE r.status = ? AND r.finished_at IS NOT NULL
                ORDER BY r.finished_at DESC, r.id DESC
                LIMIT 1
                """,
                (RUN_COMPLETED,),
            ).fetchone()
        return IngestionRun.from_row(dict(row)) if row else None

    def list_recent_runs(self, limit: int = 20) -> List[IngestionRun]:
        with self._session() as con:
            rows = con.execute(
                _RUN_SELECT + " ORDER BY r.started_at DESC, r.id DESC LIMIT ?",
                (_safe_int(limit, 20),),
            ).fetchall()
        return [IngestionRun.from_row(dict(r)) for r in rows]

    def list_runs_started_since(self, since_ts: int) -> List[IngestionRun]:
        with self._session() as con:
            rows = con.execute(
                _RUN_SELECT + " WHERE r.started_at >= ? ORDER BY r.started_at DESC, r.id DESC",
                (_safe_int(since_ts),),
            ).fetchall()
        return [IngestionRun.from_row(dict(r)) for r in rows]

    # ---- Crawl sources
    def list_crawl_sources(self) -> List[CrawlSource]:
        with self._session() as con:
            rows = con.execute(
                "SELECT * FROM crawl_sources ORDER BY priority DESC, id"
            ).fetchall()
        return [_source(r) for r in rows]

    def get_crawl_source_by_url(self, base_url: str) -> Optional[CrawlSource]:
        with self._session() as con:
            row = con.execute(
                "SELECT * FROM crawl_sources WHERE base_url = ?", (base_url,)
            ).fetchone()
        return _source(row) if row else None

    def save_crawl_source(self, source: CrawlSource) -> CrawlSource:
        with self._session() as con:
            if source.id is None:
                cur = con.execute(
                    """
                    INSERT INTO crawl_sources
                        (name, base_url, crawler_type, config, priority, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        source.name,
                        source.base_url,
                        source.crawler_type,
                        _json_dumps(source.config or {}),
                        source.priority,
                        1 if source.is_active else 0,
                        source.created_at or _now_ts(),
                    ),
                )
                sid = int(cur.lastrowid)  # type: ignore
            else:
                con.execute(
                    """
                    UPDATE crawl_sources
                    SET name = ?, base_url = ?, crawler_type = ?, config = ?, priority = ?, is_active = ?
                    WHERE id = ?
                    """,
                    (
                        source.name,
                        source.base_url,
                        source.crawler_type,
                        _json_dumps(source.config or {}),
                        source.priority,
                        1 if source.is_active else 0,
                        source.id,
                    ),
                )
                sid = int(source.id)
            row = con.execute("SELECT * FROM crawl_sources WHERE id = ?", (sid,)).fetchone()
        return _source(row)

    # ---- Categories
    def list_categories(self) -> List[Category]:
        with self._session() as con:
            rows = con.execute(
                "SELECT * FROM categories ORDER BY is_default DESC, name"
            ).fetchall()
        return [Category.from_row(dict(r)) for r in rows]

    def get_category(self, name: str) -> Optional[Category]:
        with self._session() as con:
            row = con.execute("SELECT * FROM categories WHERE name = ?", (name,)).fetchone()
        return Category.from_row(dict(row)) if row else None

    def insert_category(self, name: str, *, is_default: bool = False) -> Category:
        with self._session() as con:
            cur = con.execute(
                "INSERT INTO categories (name, is_default) VALUES (?, ?)",
                (name, 1 if is_default else 0),
            )
            cid = int(cur.lastrowid)  # type: ignore
        return Category(id=cid, name=name, is_default=is_default)
