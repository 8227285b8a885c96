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
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from appcommon.errors import Conflict, NotFound, ValidationError
from cache.coherency import Mutation, MutationEvents
from persistence import NewsStore
from persistence.models import Category, CrawlSource

logger = logging.getLogger(__name__)


def domain_label(url: str) -> str:
    """
    "https://www.brunch.co.kr/x" -> "Brunch". Falls back to the input.
    """
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return url
    host = host[4:] if host.startswith("www.") else host
    first = host.split(".")[0] if host else ""
    return first[:1].upper() + first[1:] if first else url


def infer_crawler_type(url: str) -> str:
    u = url.lower()
    if u.endswith((".xml", "/rss", "/feed", "/atom")) or "rss" in u or "/feed" in u:
        return "rss"
    if "sitemap" in u:
        return "sitemap"
    return "auto"


class StoreMutations:
    """
    Write operations whose results are visible through cached read paths.

    Each operation publishes its Mutation only after the store write went
    through. Input is validated before the first write; a failed write raises
    and publishes nothing unless earlier rows of the same call were saved.
    """

    def __init__(self, store: NewsStore, events: MutationEvents):
        self.store = store
        self.events = events

    def delete_article(self, article_id: str) -> None:
        """Soft delete (is_active=false)."""
        if not self.store.deactivate_article(article_id):
            raise NotFound(f"Article not found: {article_id}")
        logger.info("Article %s deleted", article_id)
        self.events.committed(Mutation.ARTICLE_DELETED)

    def write_summary(
        self,
        article_id: str,
        *,
        ai_summary: str,
        summary_tags: List[str],
        summary: Optional[str],
    ) -> None:
        updated = self.store.update_article_summary(
            article_id,
            ai_summary=ai_summary,
            summary_tags=summary_tags,
            summary=summary,
        )
        if not updated:
            raise NotFound(f"Article not found: {article_id}")
        self.events.committed(Mutation.SUMMARY_WRITTEN)

    def save_sources(self, sources: Iterable[Dict[str, Any]]) -> List[CrawlSource]:
        """
        Upsert crawl sources keyed by base URL. Entries without a url are skipped.
        """
        entries = list(sources)
        if not all(isinstance(raw, dict) for raw in entries):
            raise ValidationError("Invalid sources data")

        saved: List[CrawlSource] = []
        try:
            for raw in entries:
                self._save_source(raw, saved)
        finally:
            # rows written before a store failure are still visible to readers
            if saved:
                self.events.committed(Mutation.SOURCES_CHANGED)
        return saved

    def _save_source(self, raw: Dict[str, Any], saved: List[CrawlSource]) -> None:
        url = str(raw.get("url") or "").strip()
        if not url:
            return
        name = str(raw.get("name") or "").strip() or domain_label(url)
        config = {"category": raw.get("category")}

        existing = self.store.get_crawl_source_by_url(url)
        if existing:
            existing.name = name
            existing.config = config
            saved.append(self.store.save_crawl_source(existing))
            return

        crawler_type = infer_crawler_type(url)
        logger.info("New source: %s -> crawler_type: %s", url, crawler_type)
        saved.append(
            self.store.save_crawl_source(
                CrawlSource(
                    id=None,
                    name=name,
                    base_url=url,
                    crawler_type=crawler_type,
                    config=config,
                )
            )
        )

    def add_category(self, name: str) -> Category:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name cannot be empty")
        if self.store.get_category(name):
            raise Conflict("Category already exists")
        category = self.store.insert_category(name)
        self.events.committed(Mutation.CATEGORIES_CHANGED)
        return category
