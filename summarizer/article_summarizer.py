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
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import aiohttp

from appcommon import section
from llmClient import LLMClient, create_llm_client
from summarizer.helpers import as_tags, clip_text, load_prompts, parse_json_reply

logger = logging.getLogger(__name__)


@dataclass
class SummaryResult:
    success: bool
    summary: str = ""
    summary_tags: List[str] = field(default_factory=list)
    detailed_summary: str = ""
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "SummaryResult":
        return cls(success=False, error=error)

    @classmethod
    def from_reply(cls, obj: Dict[str, Any]) -> "SummaryResult":
        detailed = str(obj.get("detailed_summary") or "").strip()
        summary = str(obj.get("summary") or "").strip()
        if not summary and detailed:
            # headline is the first line of the detailed summary
            summary = detailed.splitlines()[0].strip()
        if not summary:
            return cls.failed("Empty summary in AI response")
        return cls(
            success=True,
            summary=summary,
            summary_tags=as_tags(obj.get("summary_tags", obj.get("summary_tag"))),
            detailed_summary=detailed,
        )


class Summarizer(Protocol):
    async def summarize(self, title: str, content: str) -> SummaryResult: ...


class LLMSummarizer:
    """Summarizes through a chat model that answers with a JSON object."""

    def __init__(
        self,
        llm: LLMClient,
        prompts: Dict[str, str],
        *,
        clip_chars: int = 3000,
        temperature: float = 0.5,
    ):
        self.llm = llm
        self.prompts = prompts
        self.clip_chars = clip_chars
        self.temperature = temperature

    def build_messages(self, title: str, content: str) -> List[Dict[str, str]]:
        user = self.prompts["article_user_template"].format(
            title=title, content=clip_text(content, self.clip_chars)
        )
        return [
            {"role": "system", "content": self.prompts["system"]},
            {"role": "user", "content": user},
        ]

    async def summarize(self, title: str, content: str) -> SummaryResult:
        try:
            raw = await self.llm.chat(
                self.build_messages(title, content), temperature=self.temperature
            )
        except Exception as e:
            logger.error("AI summary generation failed: %s", e)
            return SummaryResult.failed(str(e) or e.__class__.__name__)

        obj = parse_json_reply(raw)
        if obj is None:
            logger.error("Failed to parse AI response: %s", clip_text(raw, 300))
            return SummaryResult.failed("Failed to parse AI response")
        return SummaryResult.from_reply(obj)


class EdgeFunctionSummarizer:
    """
    Remote summarize function: POST {title, content} with a bearer key, reply
    {success, summary, summary_tags, detailed_summary} or {success: false, error}.
    """

    def __init__(self, url: str, api_key: str, *, timeout_s: float = 60.0, clip_chars: int = 3000):
        self.url = url
        self.api_key = api_key
        self.timeout_s = timeout_s
        self.clip_chars = clip_chars

    async def summarize(self, title: str, content: str) -> SummaryResult:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        body = {"title": title, "content": clip_text(content, self.clip_chars)}
        timeout = aiohttp.ClientTimeout(total=self.timeout_s)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.url, json=body, headers=headers) as resp:
                    if resp.status >= 400:
                        text = await resp.text(errors="ignore")
                        logger.error("Edge function error %s: %s", resp.status, text[:300])
                        return SummaryResult.failed(f"Edge function error: {resp.status}")
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error("Edge function request failed: %s", e)
            return SummaryResult.failed(str(e) or e.__class__.__name__)

        if not isinstance(data, dict) or not data.get("success"):
            err = data.get("error") if isinstance(data, dict) else None
            return SummaryResult.failed(str(err or "Unknown edge function error"))
        return SummaryResult.from_reply(data)


class FallbackSummarizer:
    """Tries primary; on a failed result asks the fallback."""

    def __init__(self, primary: Summarizer, fallback: Summarizer):
        self.primary = primary
        self.fallback = fallback

    async def summarize(self, title: str, content: str) -> SummaryResult:
        result = await self.primary.summarize(title, content)
        if result.success:
            return result
        logger.info("Primary summarizer failed, falling back to local: %s", result.error)
        return await self.fallback.summarize(title, content)


def create_summarizer(config: Dict[str, Any]) -> Summarizer:
    """
    Local LLM summarizer, fronted by the edge function when one is configured.
    Call once per event loop.
    """
    s_cfg = section(config, "summarize")
    clip_chars = int(s_cfg.get("content_clip_chars", 3000))
    local = LLMSummarizer(
        create_llm_client(config),
        load_prompts(config),
        clip_chars=clip_chars,
        temperature=float(s_cfg.get("temperature", 0.5)),
    )

    edge = s_cfg.get("edge_function") or {}
    url = str(edge.get("url") or "").strip()
    key = str(edge.get("api_key") or "").strip()
    # an unset ${VAR} base leaves a relative url behind
    if bool(edge.get("enabled", True)) and url.startswith(("http://", "https://")) and key:
        remote = EdgeFunctionSummarizer(
            url, key, timeout_s=float(edge.get("timeout_s", 60)), clip_chars=clip_chars
        )
        return FallbackSummarizer(remote, local)
    return local
