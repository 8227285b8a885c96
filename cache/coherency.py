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
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from cache.store import CacheKeys, CacheStore

logger = logging.getLogger(__name__)


class Mutation(str, Enum):
    ARTICLE_DELETED = "article_deleted"
    SUMMARY_WRITTEN = "summary_written"
    SOURCES_CHANGED = "sources_changed"
    CATEGORIES_CHANGED = "categories_changed"


@dataclass(frozen=True)
class Invalidation:
    target: str
    prefix: bool = False


# Which cached reads each committed mutation makes stale.
INVALIDATION_RULES: Dict[Mutation, Tuple[Invalidation, ...]] = {
    Mutation.ARTICLE_DELETED: (Invalidation(CacheKeys.ARTICLES_PREFIX, prefix=True),),
    Mutation.SUMMARY_WRITTEN: (Invalidation(CacheKeys.ARTICLES_PREFIX, prefix=True),),
    Mutation.SOURCES_CHANGED: (Invalidation(CacheKeys.SOURCES),),
    Mutation.CATEGORIES_CHANGED: (Invalidation(CacheKeys.CATEGORIES),),
}

Listener = Callable[[Mutation], None]


class MutationEvents:
    """
    Post-commit events for store mutations.

    A mutation calls committed() after its write succeeded. Listeners (the cache
    invalidator) run synchronously. Inside deferred() events are collected per
    context (thread or asyncio task) and each distinct mutation is delivered
    once when the block exits.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []
        self._pending: ContextVar[Optional[List[Mutation]]] = ContextVar(
            f"mutation_events_pending_{id(self)}", default=None
        )

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def committed(self, mutation: Mutation) -> None:
        pending = self._pending.get()
        if pending is not None:
            if mutation not in pending:
                pending.append(mutation)
            return
        self._deliver(mutation)

    @contextmanager
    def deferred(self) -> Iterator[None]:
        if self._pending.get() is not None:
            # nested: the outermost block delivers
            yield
            return
        pending: List[Mutation] = []
        token = self._pending.set(pending)
        try:
            yield
        finally:
            self._pending.reset(token)
            for m in pending:
                self._deliver(m)

    def _deliver(self, mutation: Mutation) -> None:
        for listener in list(self._listeners):
            listener(mutation)


class CacheInvalidator:
    """Applies INVALIDATION_RULES to a CacheStore."""

    def __init__(self, cache: CacheStore):
        self.cache = cache

    def __call__(self, mutation: Mutation) -> None:
        for inv in INVALIDATION_RULES.get(mutation, ()):
            if inv.prefix:
                self.cache.invalidate_prefix(inv.target)
            else:
                self.cache.invalidate(inv.target)
        logger.info("Cache invalidated after %s", mutation.value)


def wire_cache(events: MutationEvents, cache: CacheStore) -> CacheInvalidator:
    invalidator = CacheInvalidator(cache)
    events.subscribe(invalidator)
    return invalidator
