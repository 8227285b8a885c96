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
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheKeys:
    SOURCES = "api:sources"
    CATEGORIES = "api:categories"
    ARTICLES_PREFIX = "api:articles:"  # + canonical query string


@dataclass(frozen=True)
class CacheTTL:
    """Seconds each cached read path may serve before going back to the store."""

    sources: float = 60.0
    categories: float = 300.0
    articles: float = 30.0

    @classmethod
    def from_config(cls, cache_cfg: Dict[str, Any]) -> "CacheTTL":
        ttl = (cache_cfg or {}).get("ttl_seconds") or {}
        d = cls()
        return cls(
            sources=float(ttl.get("sources", d.sources)),
            categories=float(ttl.get("categories", d.categories)),
            articles=float(ttl.get("articles", d.articles)),
        )


@dataclass
class CacheEntry:
    data: Any
    expires_at: float


class CacheStore:
    """
    In-process key -> value cache with per-entry TTL.

    Best effort only: nothing survives a restart and the store is never the
    source of truth. Expired entries are dropped when read, there is no sweeper.
    One lock guards the mapping; no method blocks on anything but that lock.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return None
            return entry.data

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(data=value, expires_at=self._clock() + float(ttl))

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
        if doomed:
            logger.debug("Cache: invalidated %d entries under %r", len(doomed), prefix)
        return len(doomed)

    def read_through(self, key: str, ttl: float, loader: Callable[[], T]) -> Tuple[T, bool]:
        """
        Cached value for key, loading and storing it on a miss. Returns
        (value, hit). The loader runs outside the lock, so two concurrent misses
        may both load; the last one to finish wins. A loader error stores nothing.
        """
        cached = self.get(key)
        if cached is not None:
            return cached, True
        value = loader()
        self.set(key, value, ttl)
        return value, False

    def get_or_set(self, key: str, ttl: float, loader: Callable[[], T]) -> T:
        return self.read_through(key, ttl, loader)[0]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
