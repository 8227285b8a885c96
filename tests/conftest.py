import time
from typing import List, Optional

import pytest

from cache import CacheStore
from persistence.models import Article
from persistence.SqliteStore import SqliteStore
from summarizer.article_summarizer import SummaryResult


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSummarizer:
    """Summarizes every title except the ones listed in fail_titles."""

    def __init__(self, fail_titles: Optional[List[str]] = None):
        self.fail_titles = set(fail_titles or [])
        self.calls: List[str] = []

    async def summarize(self, title: str, content: str) -> SummaryResult:
        self.calls.append(title)
        if title in self.fail_titles:
            return SummaryResult.failed("model unavailable")
        return SummaryResult(
            success=True,
            summary=f"Summary of {title}",
            summary_tags=["a", "b", "c"],
            detailed_summary=f"Summary of {title}\n\nDetails.",
        )


def make_article(article_id: str, **kw) -> Article:
    now = int(time.time())
    values = dict(
        title=f"Title {article_id}",
        source_id="src-1",
        source_name="Brunch",
        source_url=f"https://example.com/{article_id}",
        content_preview=f"Body of article {article_id}.",
        published_at=now,
        crawled_at=now,
    )
    values.update(kw)
    return Article(id=article_id, **values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheStore(clock=clock)


@pytest.fixture
def sqlite_store(tmp_path):
    return SqliteStore(path=str(tmp_path / "news.sqlite"))
