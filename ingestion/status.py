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
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from appcommon import format_iso
from appcommon.errors import UpstreamFailure
from persistence import NewsStore, StoreError
from persistence.models import RUN_COMPLETED, RUN_FAILED, RUN_RUNNING, IngestionRun

logger = logging.getLogger(__name__)

RECENT_RUNS_LIMIT = 20

# Runs started up to this long before the running one count as the same crawl pass.
BATCH_WINDOW_S = 60 * 60


@dataclass
class StatusSnapshot:
    is_running: bool
    last_run: Optional[int]
    recent_runs: List[IngestionRun] = field(default_factory=list)
    completed_sources: int = 0
    total_sources: int = 0
    new_articles: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "lastRun": format_iso(self.last_run),
            "recentRuns": [r.to_dict() for r in self.recent_runs],
            "completedSources": self.completed_sources,
            "totalSources": self.total_sources,
            "newArticles": self.new_articles,
        }


class StatusAggregator:
    """
    Builds the crawl status view from the run records.

    Reads are independent, so a run may change state between them; that is
    accepted. Any failed read fails the whole snapshot: a status assembled from
    partial reads could claim "not running" while a run is in flight.
    The snapshot is never cached.
    """

    def __init__(self, store: NewsStore, *, recent_limit: int = RECENT_RUNS_LIMIT):
        self.store = store
        self.recent_limit = recent_limit

    def get_status(self) -> StatusSnapshot:
        try:
            running = self.store.list_runs_by_status(RUN_RUNNING, limit=1)
            last = self.store.get_last_completed_run()
            recent = self.store.list_recent_runs(limit=self.recent_limit)
            snapshot = StatusSnapshot(
                is_running=bool(running),
                last_run=last.finished_at if last else None,
                recent_runs=recent[: self.recent_limit],
            )
            if running:
                self._add_batch_progress(snapshot, running[0])
        except StoreError as e:
            logger.error("Error fetching crawl status: %s", e)
            raise UpstreamFailure("Failed to fetch crawl status") from e
        return snapshot

    def _add_batch_progress(self, snapshot: StatusSnapshot, running: IngestionRun) -> None:
        cutoff = int(running.started_at) - BATCH_WINDOW_S
        batch = [
            r
            for r in self.store.list_runs_started_since(cutoff)
            if r.status in (RUN_RUNNING, RUN_COMPLETED, RUN_FAILED)
        ]
        snapshot.total_sources = len(batch)
        snapshot.completed_sources = sum(1 for r in batch if r.status in (RUN_COMPLETED, RUN_FAILED))
        snapshot.new_articles = sum(int(r.articles_new or 0) for r in batch)
