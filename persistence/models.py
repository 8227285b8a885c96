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

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from appcommon import format_iso

RUN_RUNNING = "running"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"
RUN_STATUSES = (RUN_RUNNING, RUN_COMPLETED, RUN_FAILED)


def _from_mapping(cls, row: Dict[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in dict(row).items() if k in names})


@dataclass
class Article:
    id: str
    title: str
    source_id: str = ""
    source_name: str = ""
    source_url: str = ""
    thumbnail_url: Optional[str] = None
    content_preview: Optional[str] = None
    summary: Optional[str] = None  # detailed summary
    ai_summary: Optional[str] = None  # one-line summary, NULL = pending
    summary_tags: List[str] = field(default_factory=list)
    author: Optional[str] = None
    category: Optional[str] = None
    published_at: Optional[int] = None
    crawled_at: int = 0
    priority: int = 0
    is_active: bool = True
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Article":
        a = _from_mapping(cls, row)
        a.summary_tags = list(a.summary_tags or [])
        a.is_active = bool(a.is_active)
        return a

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for k in ("published_at", "crawled_at", "created_at", "updated_at"):
            d[k] = format_iso(d[k])
        return d


@dataclass
class IngestionRun:
    id: int
    source_id: int
    status: str
    started_at: int
    finished_at: Optional[int] = None
    articles_found: int = 0
    articles_new: int = 0
    error_message: Optional[str] = None
    source_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "IngestionRun":
        return _from_mapping(cls, row)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["started_at"] = format_iso(self.started_at)
        d["finished_at"] = format_iso(self.finished_at)
        return d


@dataclass
class CrawlSource:
    id: Optional[int]
    name: str
    base_url: str
    crawler_type: str = "auto"
    config: Dict[str, Any] = field(default_factory=dict)
    priority: int = 1
    is_active: bool = True
    last_crawled_at: Optional[int] = None
    created_at: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CrawlSource":
        s = _from_mapping(cls, row)
        s.config = dict(s.config or {})
        s.is_active = bool(s.is_active)
        return s

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["last_crawled_at"] = format_iso(self.last_crawled_at)
        d["created_at"] = format_iso(self.created_at)
        return d


@dataclass
class Category:
    id: int
    name: str
    is_default: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Category":
        c = _from_mapping(cls, row)
        c.is_default = bool(c.is_default)
        return c

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ArticleQuery:
    page: int = 1
    limit: int = 12
    search: str = ""
    category: str = ""
    source: str = ""

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def canonical(self) -> str:
        """Stable query string; equal queries give equal cache keys."""
        return urlencode(sorted(asdict(self).items()))


@dataclass
class ArticlePage:
    articles: List[Article]
    total: int
    page: int
    limit: int

    @property
    def has_more(self) -> bool:
        return (self.page - 1) * self.limit + self.limit < self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "articles": [a.to_dict() for a in self.articles],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "hasMore": self.has_more,
        }
