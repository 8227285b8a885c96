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

import argparse
import asyncio
import json
import logging
from typing import Optional

from appcommon import config_path, load_config
from appcommon.errors import AppError
from appcommon.services import build_services
from summarizer.helpers import setup_logging

logger = logging.getLogger(__name__)


async def run_pipeline(
    cfg_path: str,
    *,
    batch_size: Optional[int] = None,
    article_id: Optional[str] = None,
) -> dict:
    """
    Cron entry point: summarize one article, or one batch of pending articles.
    """
    services = build_services(load_config(cfg_path))
    orchestrator = services.orchestrator()

    if article_id:
        outcome = await orchestrator.process_article_summary(article_id)
        return outcome.to_dict()

    result = await orchestrator.process_pending_summaries(batch_size)
    return {"ok": True, **result.to_dict()}


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Summarize pending articles.")
    ap.add_argument("--config", default=config_path())
    ap.add_argument("--batch-size", type=int, default=None)
    ap.add_argument("--article", default=None, help="summarize a single article id")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args(argv)

    setup_logging(args.log_level.upper())
    if args.batch_size is not None and args.batch_size < 1:
        ap.error("--batch-size must be >= 1")

    try:
        out = asyncio.run(
            run_pipeline(args.config, batch_size=args.batch_size, article_id=args.article)
        )
    except AppError as e:
        logger.error("Summarize run failed: %s", e)
        return 1

    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0 if out.get("success", True) else 1


if __name__ == "__main__":
    raise SystemExit(main())
