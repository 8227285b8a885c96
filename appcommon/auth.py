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
from typing import Mapping, Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # werkzeug Headers are case-insensitive, plain dicts (tests, scripts) are not
    v = headers.get(name)
    if v is None:
        lname = name.lower()
        for k, val in headers.items():
            if k.lower() == lname:
                v = val
                break
    if v is None:
        return None
    v = str(v).strip()
    return v or None


def _url_host(value: str) -> Optional[str]:
    """
    host[:port] of an absolute URL, like the browser URL.host (default port dropped).
    None when the value is not a usable absolute URL.
    """
    try:
        parts = urlsplit(value)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    if ":" in hostname:
        hostname = f"[{hostname}]"
    if port is None or _DEFAULT_PORTS.get(parts.scheme.lower()) == port:
        return hostname
    return f"{hostname}:{port}"


def verify_bearer(headers: Mapping[str, str], secret: Optional[str]) -> bool:
    """
    Server-to-server auth: Authorization must be exactly "Bearer <secret>".

    Without a configured secret nothing is accepted.
    """
    if not secret:
        logger.warning("Bearer auth rejected: cron secret not configured")
        return False
    return _header(headers, "authorization") == f"Bearer {secret}"


def verify_same_origin(headers: Mapping[str, str]) -> bool:
    """
    CSRF defense for browser requests: Origin (or Referer) host must equal Host.

    Requests carrying neither header are rejected; schedulers and scripts use
    bearer auth instead.
    """
    host = _header(headers, "host")
    if not host:
        return False
    host = host.lower()

    origin = _header(headers, "origin")
    if origin:
        return _url_host(origin) == host

    referer = _header(headers, "referer")
    if referer:
        return _url_host(referer) == host

    return False
