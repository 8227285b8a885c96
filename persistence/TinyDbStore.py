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

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from tinydb import Query, TinyDB

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

_RUN_FIELDS = {
    "started_at",
    "finished_at",
    "status",
    "articles_found",
    "articles_new",
    "error_message",
}


def _published_sort_key(a: Dict[str, Any]):
    # published_at DESC NULLS LAST, then crawled_at DESC
    pub = a.get("published_at")
    return (pub is None, -(pub or 0), -int(a.get("crawled_at") or 0), str(a.get("id")))


class TinyDBStore:
    """
    TinyDB-backed store (JSON file). Implements NewsStore.
    Uses TinyDB doc_id as the integer id for crawl runs, sources and categories.
    """

    def __init__(self, path: str = "insighthub.json"):
        self.path = path
        self._lock = threading.Lock()

    @contextmanager
    def _db(self) -> Iterator[TinyDB]:
        with self._lock:
            try:
                db = TinyDB(self.path)
            except (OSError, ValueError) as e:
                raise StoreError(f"tinydb open failed: {e}") from e
            try:
                yield db
            except (OSError, ValueError, KeyError) as e:
                logger.error("tinydb error: %s", e)
                raise StoreError(str(e)) from e
            finally:
                db.close()

    # ---- Articles
    def get_article(self, article_id: str) -> Optional[Article]:
        A = Query()
        with self._db() as db:
            res = db.table("articles").search(A.id == str(article_id))
        return Article.from_row(res[0]) if res else None

    def upsert_article(self, article: Article) -> None:
        if not article.id:
            raise ValueError("article must have an id")
        now = int(time.time())
        doc = dict(vars(article))
        doc["summary_tags"] = list(article.summary_tags or [])
        doc["crawled_at"] = article.crawled_at or now
        doc["created_at"] = article.created_at or now
        doc["updated_at"] = now
        A = Query()
        with self._db() as db:
            db.table("articles").upsert(doc, A.id == article.id)

    def list_articles(self, query: ArticleQuery) -> ArticlePage:
        needle = query.search.lower()

        def match(row: Dict[str, Any]) -> bool:
            if not row.get("is_active", True):
                return False
            if query.category and row.get("category") != query.category:
                return False
            if query.source and row.get("source_name") != query.source:
                return False
            if needle:
                hay = [row.get("title"), row.get("summary"), row.get("content_preview")]
                if not any(needle in str(h or "").lower() for h in hay):
                    return False
            return True

        with self._db() as db:
            rows = [dict(r) for r in db.table("articles").search(match)]
        rows.sort(key=_published_sort_key)
        window = rows[query.offset : query.offset + query.limit]
        return ArticlePage(
            articles=[Article.from_row(r) for r in window],
            total=len(rows),
            page=query.page,
            limit=query.limit,
        )

    def list_source_names(self) -> List[str]:
        with self._db() as db:
            rows = db.table("articles").search(lambda r: bool(r.get("is_active", True)))
        return sorted({str(r["source_name"]) for r in rows if r.get("source_name")})

    def list_pending_summaries(self, limit: int = 20) -> List[Article]:
        with self._db() as db:
            rows = db.table("articles").search(
                lambda r: r.get("ai_summary") is None and bool(r.get("is_active", True))
            )
        rows = sorted(rows, key=lambda r: (-int(r.get("crawled_at") or 0), str(r.get("id"))))
        return [Article.from_row(r) for r in rows[: int(limit)]]

    def update_article_summary(
        self,
        article_id: str,
        *,
        ai_summary: str,
        summary_tags: List[str],
        summary: Optional[str],
    ) -> bool:
        A = Query()
        with self._db() as db:
            updated = db.table("articles").update(
                {
                    "ai_summary": ai_summary,
                    "summary_tags": list(summary_tags or []),
                    "summary": summary,
                    "updated_at": int(time.time()),
                },
                A.id == str(article_id),
            )
        return bool(updated)

    def deactivate_article(self, article_id: str) -> bool:
        A = Query()
        with self._db() as db:
            updated = db.table("articles").update(
                {"is_active": False, "updated_at": int(time.time())},
                (A.id == str(article_id)) & (A.is_active == True),  # noqa: E712
            )
        return bool(updated)

    # ---- Crawl runs
    def _run(self, db: TinyDB, doc) -> IngestionRun:
        row = {"id": doc.doc_id, **dict(doc)}
        src = db.table("crawl_sources").get(doc_id=int(row.get("source_id") or 0)) if row.get("source_id") else None
        row["source_name"] = src.get("name") if src else None
        return IngestionRun.from_row(row)

    def create_run(self, source_id: int, *, started_at: Optional[int] = None) -> int:
        with self._db() as db:
            rid = db.table("crawl_runs").insert(
                {
                    "source_id": int(source_id),
                    "status": RUN_RUNNING,
                    "started_at": started_at or int(time.time()),
                    "finished_at": None,
                    "articles_found": 0,
                    "articles_new": 0,
                    "error_message": None,
                }
            )
        logger.info("Crawl run %s created (source=%s)", rid, source_id)
        return rid

    def update_run(self, run_id: int, **fields) -> None:
        unknown = set(fields) - _RUN_FIELDS
        if unknown:
            raise ValueError(f"unknown crawl run fields: {sorted(unknown)}")
        with self._db() as db:
            db.table("crawl_runs").update(fields, doc_ids=[int(run_id)])
        logger.info("Crawl run %s updated: %s", run_id, fields)

    def get_run(self, run_id: int) -> Optional[IngestionRun]:
        with self._db() as db:
            doc = db.table("crawl_runs").get(doc_id=int(run_id))
            return self._run(db, doc) if doc else None

    def _runs(self, cond=None, *, key, limit: Optional[int] = None) -> List[IngestionRun]:
        with self._db() as db:
            t = db.table("crawl_runs")
            docs = t.search(cond) if cond is not None else t.all()
            docs = sorted(docs, key=key)
            if limit is not None:
                docs = docs[:limit]
            return [self._run(db, d) for d in docs]

    def list_runs_by_status(self, status: str, limit: int = 1) -> List[IngestionRun]:
        R = Query()
        return self._runs(
            R.status == status,
            key=lambda d: (-int(d.get("started_at") or 0), -d.doc_id),
            limit=int(limit),
        )

    def get_last_completed_run(self) -> Optional[IngestionRun]:
        runs = self._runs(
            lambda r: r.get("status") == RUN_COMPLETED and r.get("finished_at") is not None,
            key=lambda d: (-int(d.get("finished_at") or 0), -d.doc_id),
            limit=1,
        )
        return runs[0] if runs else None

    def list_recent_runs(self, limit: int = 20) -> List[IngestionRun]:
        return self._runs(
            key=lambda d: (-int(d.get("started_at") or 0), -d.doc_id),
            limit=int(limit),
        )

    def list_runs_started_since(self, since_ts: int) -> List[IngestionRun]:
        return self._runs(
            lambda r: int(r.get("started_at") or 0) >= int(since_ts),
            key=lambda d: (-int(d.get("started_at") or 0), -d.doc_id),
        )

    # ---- Crawl sources
    def list_crawl_sources(self) -> List[CrawlSource]:
        with self._db() as db:
            docs = db.table("crawl_sources").all()
        out = [CrawlSource.from_row({**dict(d), "id": d.doc_id}) for d in docs]
        out.sort(key=lambda s: (-s.priority, s.id or 0))
        return out

    def get_crawl_source_by_url(self, base_url: str) -> Optional[CrawlSource]:
        S = Query()
        with self._db() as db:
            docs = db.table("crawl_sources").search(S.base_url == base_url)
        return CrawlSource.from_row({**dict(docs[0]), "id": docs[0].doc_id}) if docs else None

    def save_crawl_source(self, source: CrawlSource) -> CrawlSource:
        doc = dict(vars(source))
        doc.pop("id", None)
        doc["config"] = dict(source.config or {})
        doc["created_at"] = source.created_at or int(time.time())
        with self._db() as db:
            t = db.table("crawl_sources")
            if source.id is None:
                sid = t.insert(doc)
            else:
                sid = int(source.id)
                doc.pop("created_at")
                t.update(doc, doc_ids=[sid])
            saved = t.get(doc_id=sid)
        return CrawlSource.from_row({**dict(saved), "id": sid})

    # ---- Categories
    def list_categories(self) -> List[Category]:
        with self._db() as db:
            docs = db.table("categories").all()
        out = [Category.from_row({**dict(d), "id": d.doc_id}) for d in docs]
        out.sort(key=lambda c: (not c.is_default, c.name))
        return out

    def get_category(self, name: str) -> Optional[Category]:
        C = Query()
        with self._db() as db:
            docs = db.table("categories").search(C.name == name)
        return Category.from_row({**dict(docs[0]), "id": docs[0].doc_id}) if docs else None

    def insert_category(self, name: str, *, is_default: bool = False) -> Category:
        with self._db() as db:
            cid = db.table("categories").insert({"name": name, "is_default": bool(is_default)})
        return Category(id=cid, name=name, is_default=is_default)
