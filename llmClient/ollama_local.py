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
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from llmClient import LLMError

logger = logging.getLogger(__name__)


@dataclass
class OllamaConfig:
    base_url: str = "http://localhost:11434"
    model: str = "llama3.1:latest"
    max_rps: float = 1.0
    timeout_s: float = 180.0
    max_retries: int = 3
    # ask Ollama for a JSON object reply ("format": "json")
    json_mode: bool = True
    max_output_tokens: int = 700


class OllamaClient:
    """
    Ollama chat client using /api/chat (non-streaming).

    Transport errors and timeouts are retried with jittered backoff; HTTP
    errors from Ollama are not (they surface as LLMError).
    """

    def __init__(
        self, cfg: OllamaConfig, logger_override: Optional[logging.Logger] = None
    ):
        self.cfg = cfg
        self.log = logger_override or logger

        # AsyncLimiter takes ints; for rps < 1 the sleep gate below does the work.
        self._limiter = AsyncLimiter(max_rate=max(1, int(cfg.max_rps)), time_period=1)
        self._min_interval = 1.0 / cfg.max_rps if cfg.max_rps > 0 else 0.0
        self._last_call = 0.0
        self._gate_lock = asyncio.Lock()

    async def _rate_gate(self) -> None:
        if self._min_interval <= 0:
            return
        async with self._gate_lock:
            loop = asyncio.get_running_loop()
            wait_for = (self._last_call + self._min_interval) - loop.time()
            if wait_for > 0:
                await asyncio.sleep(wait_for)
            self._last_call = loop.time()

    def _payload(self, messages: List[Dict[str, str]], temperature: float) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.cfg.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": self.cfg.max_output_tokens,
            },
        }
        if self.cfg.json_mode:
            payload["format"] = "json"
        return payload

    async def _post(self, payload: Dict[str, Any]) -> str:
        url = f"{self.cfg.base_url.rstrip('/')}/api/chat"
        timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s, sock_connect=30)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with self._limiter:
                async with session.post(url, json=payload) as resp:
                    if resp.status >= 400:
                        text = await resp.text(errors="ignore")
                        self.log.error("Ollama error %s: %s", resp.status, text[:400])
                        raise LLMError(f"Ollama error {resp.status}: {text[:400]}")
                    data = await resp.json(content_type=None)
        return ((data.get("message") or {}).get("content") or "").strip()

    async def chat(
        self, messages: List[Dict[str, str]], *, temperature: float = 0.2
    ) -> str:
        await self._rate_gate()
        payload = self._payload(messages, temperature)
        self.log.info("LLM request start (model=%s)", self.cfg.model)

        retrying = AsyncRetrying(
            wait=wait_exponential_jitter(initial=2, max=30),
            stop=stop_after_attempt(max(1, self.cfg.max_retries)),
            retry=retry_if_exception_type((aiohttp.ClientError, asyncio.TimeoutError)),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    text = await self._post(payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise LLMError(f"Ollama request failed: {e}") from e

        self.log.info("LLM request done (chars=%d)", len(text))
        return text
