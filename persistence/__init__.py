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

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from persistence.models import (
    Article,
    ArticlePage,
    ArticleQuery,
    Category,
    CrawlSource,
    IngestionRun,
)


class StoreError(Exception):
    pass


class NewsStore(Protocol):
    # ---- Articles
    def get_article(self, article_id: str) -> Optional[Article]: ...

    def upsert_article(self, article: Article) -> None: ...

    def list_articles(self, query: ArticleQuery) -> ArticlePage: ...

    def list_source_names(self) -> List[str]: ...

    def list_pending_summaries(self, limit: int = 20) -> List[Article]: ...

    def update_article_summary(
        self,
        article_id: str,
        *,
        ai_summary: str,
        summary_tags: List[str],
        summary: Optional[str],
    ) -> bool: ...

    def deactivate_article(self, article_id: str) -> bool: ...

    # ---- Crawl runs
    def create_run(self, source_id: int, *, started_at: Optional[int] = None) -> int: ...

    def update_run(self, run_id: int, **fields) -> None: ...

    def get_run(self, run_id: int) -> Optional[IngestionRun]: ...

    def list_runs_by_status(self, status: str, limit: int = 1) -> List[IngestionRun]: ...

    def get_last_completed_run(self) -> Optional[IngestionRun]: ...

    def list_recent_runs(self, limit: int = 20) -> List[IngestionRun]: ...

    def list_runs_started_since(self, since_ts: int) -> List[IngestionRun]: ...

    # ---- Crawl sources
    def list_crawl_sources(self) -> List[CrawlSource]: ...

    def get_crawl_source_by_url(self, base_url: str) -> Optional[CrawlSource]: ...

    def save_crawl_source(self, source: CrawlSource) -> CrawlSource: ...

    # ---- Categories
    def list_categories(self) -> List[Category]: ...

    def get_category(self, name: str) -> Optional[Category]: ...

    def insert_category(self, name: str, *, is_default: bool = False) -> Category: ...


def _expand_path(p: str) -> str:
    expanded = os.path.expandvars(os.path.expanduser(p))
    return str(Path(expanded).resolve())


def create_store(cfg: Dict[str, Any]) -> NewsStore:
    provider = (cfg.get("provider") or "sqlite").lower()

    if provider == "sqlite":
        from persistence.SqliteStore import SqliteStore

        path = _expand_path(cfg.get("path", "insighthub.sqlite"))
        return SqliteStore(path=path)

    if provider == "tinydb":
        from persistence.TinyDbStore import TinyDBStore

        path = _expand_path(cfg.get("path", "insighthub.json"))
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return TinyDBStore(path=path)

    raise ValueError(f"Unsupported store provider: {provider}")
