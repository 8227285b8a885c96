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

import json
import logging
import re
import sys
from typing import Any, Dict, List, Optional

import yaml

from appcommon import resolve_path

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    h = logging.StreamHandler(sys.stdout)
    h.setLevel(level)
    formatter = logging.Formatter(
        " %(asctime)s - %(name)s - %(levelname)s:   %(message)s"
    )
    h.setFormatter(formatter)
    root.addHandler(h)


def clip_text(s: str, n: int = 3000) -> str:
    s = (s or "").strip()
    return s if len(s) <= n else s[:n] + "..."


def clip_line(s: str, n: int = 40) -> str:
    return clip_text(s=s, n=n)


_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_reply(raw: str) -> Optional[Dict[str, Any]]:
    """
    Model replies are supposed to be one JSON object; tolerate ```json fences
    and leading chatter before the first brace.
    """
    text = _FENCE_RE.sub("", (raw or "").strip())
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        obj = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def as_tags(v: Any, limit: int = 3) -> List[str]:
    if isinstance(v, str):
        v = [t for t in re.split(r"[,#]", v)]
    if not isinstance(v, list):
        return []
    tags = [str(t).strip() for t in v if str(t).strip()]
    return tags[:limit]


DEFAULT_PROMPTS: Dict[str, str] = {
    "system": (
        "You read an article and write a compact, factual summary. "
        "Reply with a single JSON object only."
    ),
    "article_user_template": (
        "Write three things for the article below:\n"
        "- summary: one headline sentence (max 40 characters) that does not repeat the title\n"
        "- summary_tag: exactly 3 short topic tags\n"
        "- detailed_summary: the headline, an empty line, then 3-4 sentences "
        "with concrete facts, numbers and examples (max 250 characters)\n"
        "No emoji, no markdown.\n\n"
        'Output format: {{"summary": "...", "summary_tag": ["...", "...", "..."], '
        '"detailed_summary": "..."}}\n\n'
        "Title: {title}\n\n{content}"
    ),
}


def load_prompts(config: Dict[str, Any]) -> Dict[str, str]:
    """
    Prompts from config.prompts.path (yaml with keys system/article_user_template),
    falling back to DEFAULT_PROMPTS per key.
    """
    out = dict(DEFAULT_PROMPTS)
    p_cfg = config.get("prompts") or {}
    if not isinstance(p_cfg, dict) or not p_cfg.get("path"):
        return out

    path = resolve_path(config, str(p_cfg["path"]))
    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("prompts file not found: %s", path)
        return out
    if not isinstance(loaded, dict):
        logger.warning("prompts file is not a mapping: %s", path)
        return out
    for k in DEFAULT_PROMPTS:
        if loaded.get(k):
            out[k] = str(loaded[k])
    return out
