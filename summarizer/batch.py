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

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from functools import reduce
from typing import Any, Dict, Optional, Tuple, Union

from appcommon.errors import NotFound, UpstreamFailure
from persistence import NewsStore, StoreError
from persistence.models import Article
from persistence.mutations import StoreMutations
from summarizer.article_summarizer import Summarizer
from summarizer.helpers import clip_line

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 20


class FailureReason(str, Enum):
    NOT_FOUND = "not_found"
    NO_CONTENT = "no_content"
    SUMMARIZER = "summarizer"
    STORE = "store"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Summarized:
    article_id: str
    summary: str
    # False when the article already had a summary and nothing was written
    written: bool = True

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "summary": self.summary}


@dataclass(frozen=True)
class Failed:
    article_id: str
    reason: FailureReason
    message: str

    @property
    def success(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


ItemOutcome = Union[Summarized, Failed]


@dataclass(frozen=True)
class BatchError:
    article_id: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"articleId": self.article_id, "message": self.message}


@dataclass(frozen=True)
class BatchResult:
    processed: int = 0
    success: int = 0
    failed: int = 0
    errors: Tuple[BatchError, ...] = ()

    def merge(self, outcome: ItemOutcome) -> "BatchResult":
        if isinstance(outcome, Summarized):
            return replace(self, processed=self.processed + 1, success=self.success + 1)
        return replace(
            self,
            processed=self.processed + 1,
            failed=self.failed + 1,
            errors=self.errors + (BatchError(outcome.article_id, outcome.message),),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.success,
            "failed": self.failed,
            "errors": [e.to_dict() for e in self.errors],
        }


class SummaryOrchestrator:
    """
    Summarizes articles that have no ai_summary yet.

    Nothing here retries: a failed article stays pending and is picked up by a
    later batch. One article failing never stops the others.
    """

    def __init__(
        self,
        store: NewsStore,
        mutations: StoreMutations,
        summarizer: Summarizer,
        *,
        item_delay_s: float = 0.5,
        default_batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.store = store
        self.mutations = mutations
        self.summarizer = summarizer
        self.item_delay_s = item_delay_s
        self.default_batch_size = default_batch_size

    async def process_article_summary(self, article_id: str) -> ItemOutcome:
        try:
            article = self.store.get_article(article_id)
        except StoreError as e:
            return Failed(article_id, FailureReason.STORE, str(e))
        if article is None:
            return Failed(article_id, FailureReason.NOT_FOUND, "Article not found")
        if article.ai_summary:
            return Summarized(article.id, article.ai_summary, written=False)
        return await self._summarize(article)

    async def process_pending_summaries(self, batch_size: Optional[int] = None) -> BatchResult:
        size = int(batch_size or self.default_batch_size)
        try:
            articles = self.store.list_pending_summaries(limit=size)
        except StoreError as e:
            logger.error("Failed to fetch articles: %s", e)
            raise UpstreamFailure("Failed to fetch articles pending summarization") from e

        if not articles:
            logger.info("No articles pending summarization")
            return BatchResult()

        logger.info("Processing %d articles for summarization", len(articles))
        outcomes = []
        # one articles-cache invalidation for the whole batch
        with self.mutations.events.deferred():
            for i, article in enumerate(articles):
                if i and self.item_delay_s > 0:
                    await asyncio.sleep(self.item_delay_s)
                outcomes.append(await self._process_item(article))

        result = reduce(BatchResult.merge, outcomes, BatchResult())
        logger.info("Batch complete: %d/%d successful", result.success, result.processed)
        return result

    async def _process_item(self, article: Article) -> ItemOutcome:
        try:
            outcome = await self._summarize(article)
        except Exception as e:
            logger.exception("Error processing %s", clip_line(article.title))
            outcome = Failed(article.id, FailureReason.UNEXPECTED, str(e) or e.__class__.__name__)
        if isinstance(outcome, Failed):
            logger.warning("Summary failed for %s: %s", article.id, outcome.message)
        return outcome

    async def _summarize(self, article: Article) -> ItemOutcome:
        if not article.content_preview:
            return Failed(article.id, FailureReason.NO_CONTENT, "No content available")

        logger.info("Summarizing: %s", clip_line(article.title))
        result = await self.summarizer.summarize(article.title, article.content_preview)
        if not result.success:
            return Failed(
                article.id,
                FailureReason.SUMMARIZER,
                result.error or "Failed to generate summary",
            )

        try:
            self.mutations.write_summary(
                article.id,
                ai_summary=result.summary,
                summary_tags=result.summary_tags,
                summary=result.detailed_summary or None,
            )
        except NotFound:
            return Failed(article.id, FailureReason.NOT_FOUND, "Article not found")
        except StoreError as e:
            return Failed(article.id, FailureReason.STORE, f"Update failed: {e}")

        logger.info("Summary generated for: %s", clip_line(article.title))
        return Summarized(article.id, result.summary)
