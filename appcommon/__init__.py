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
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = "INSIGHTHUB_CONFIG"

_ENV_RE = re.compile(r"\$\{(\w+)\}|\$(\w+)")


# ----------------------------
# Config
# ----------------------------
def resolve_env(value: Any) -> Any:
    """
    Expand ${VAR} and $VAR in strings. Unset variables become "" (not the literal
    placeholder), so a secret that is not configured stays empty.
    """
    if isinstance(value, str):
        return _ENV_RE.sub(lambda m: os.environ.get(m.group(1) or m.group(2), ""), value)
    if isinstance(value, dict):
        return {k: resolve_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env(v) for v in value]
    return value


def config_path() -> str:
    return os.environ.get(CONFIG_ENV, "config.yaml")


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load config.yaml (or $INSIGHTHUB_CONFIG). A missing file means defaults only.
    """
    p = path or config_path()
    try:
        with open(p, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config not found: %s (using defaults)", p)
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config must be a mapping: {p}")
    cfg = resolve_env(raw)
    cfg["_config_dir"] = os.path.dirname(os.path.abspath(p)) or "."
    return cfg


def section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    s = cfg.get(name) or {}
    return s if isinstance(s, dict) else {}


def resolve_path(cfg: Dict[str, Any], p: str) -> str:
    """
    Expand ~ and resolve relative paths relative to the config file location.
    """
    p2 = os.path.expanduser(p)
    if not os.path.isabs(p2):
        p2 = os.path.join(str(cfg.get("_config_dir") or "."), p2)
    return p2


def cron_secret(cfg: Dict[str, Any]) -> str:
    secret = str(section(cfg, "auth").get("cron_secret") or "").strip()
    return secret or os.environ.get("CRON_SECRET", "").strip()


# ----------------------------
# Formatting
# ----------------------------
def format_iso(ts: Optional[int]) -> Optional[str]:
    if not ts:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()
