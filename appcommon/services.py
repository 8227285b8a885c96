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
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from appcommon import cron_secret, resolve_path, section
from cache import CacheStore, CacheTTL, MutationEvents, wire_cache
from ingestion import StatusAggregator
from persistence import NewsStore, create_store
from persistence.mutations import StoreMutations
from summarizer.article_summarizer import Summarizer, create_summarizer
from summarizer.batch import DEFAULT_BATCH_SIZE, SummaryOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler needs; one instance per app."""

    config: Dict[str, Any]
    store: NewsStore
    cache: CacheStore
    ttl: CacheTTL
    events: MutationEvents
    mutations: StoreMutations
    status: StatusAggregator
    # summarizers hold loop-bound clients, so a fresh one per batch run
    summarizer_factory: Callable[[], Summarizer]
    cron_secret: str

    def orchestrator(self) -> SummaryOrchestrator:
        s_cfg = section(self.config, "summarize")
        return SummaryOrchestrator(
            self.store,
            self.mutations,
            self.summarizer_factory(),
            item_delay_s=float(s_cfg.get("item_delay_s", 0.5)),
            default_batch_size=int(s_cfg.get("batch_size", DEFAULT_BATCH_SIZE)),
        )


def build_services(
    config: Dict[str, Any],
    *,
    store: Optional[NewsStore] = None,
    cache: Optional[CacheStore] = None,
    summarizer_factory: Optional[Callable[[], Summarizer]] = None,
) -> Services:
    if store is None:
        store_cfg = dict(section(config, "store"))
        if store_cfg.get("path"):
            store_cfg["path"] = resolve_path(config, str(store_cfg["path"]))
        store = create_store(store_cfg)

    cache = cache if cache is not None else CacheStore()
    events = MutationEvents()
    wire_cache(events, cache)

    secret = cron_secret(config)
    if not secret:
        logger.warning("CRON_SECRET not configured: bearer-authenticated endpoints will reject all requests")

    return Services(
        config=config,
        store=store,
        cache=cache,
        ttl=CacheTTL.from_config(section(config, "cache")),
        events=events,
        mutations=StoreMutations(store, events),
        status=StatusAggregator(store),
        summarizer_factory=summarizer_factory or (lambda: create_summarizer(config)),
        cron_secret=secret,
    )
