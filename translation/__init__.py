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

import asyncio
import logging
from typing import List, Optional

import aiohttp

logger = logging.getLogger(__name__)

DEEPL_FREE_ENDPOINT = "https://api-free.deepl.com/v2/translate"


class TranslationError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


async def translate_texts(
    texts: List[str],
    target_lang: str,
    source_lang: str = "KO",
    *,
    api_key: str,
    endpoint: str = DEEPL_FREE_ENDPOINT,
    timeout_s: float = 30.0,
    session: Optional[aiohttp.ClientSession] = None,
) -> List[str]:
    """
    DeepL batch translation. One output per input, same order.
    Upstream HTTP errors raise TranslationError carrying the upstream status.
    """
    body = {
        "text": list(texts),
        "target_lang": target_lang.upper(),
        "source_lang": source_lang.upper(),
    }
    headers = {"Authorization": f"DeepL-Auth-Key {api_key}"}

    own = session is None
    if own:
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout_s))
    try:
        async with session.post(endpoint, json=body, headers=headers) as resp:
            if resp.status >= 400:
                text = await resp.text(errors="ignore")
                logger.error("DeepL API error %s: %s", resp.status, text[:300])
                raise TranslationError(resp.status, f"DeepL API error: {resp.status}")
            data = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error("DeepL request failed: %s", e)
        raise TranslationError(500, "Translation failed") from e
    finally:
        if own:
            await session.close()

    translations = (data or {}).get("translations") or []
    if len(translations) != len(texts):
        raise TranslationError(500, "Translation failed")
    return [str(t.get("text") or "") for t in translations]
