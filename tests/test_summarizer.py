import asyncio

import pytest

from conftest import FakeSummarizer
from summarizer.article_summarizer import (
    EdgeFunctionSummarizer,
    FallbackSummarizer,
    LLMSummarizer,
    SummaryResult,
    create_summarizer,
)
from summarizer.helpers import DEFAULT_PROMPTS, as_tags, clip_text, load_prompts, parse_json_reply


class _ScriptedLLM:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.messages = None

    async def chat(self, messages, *, temperature=0.2):
        self.messages = messages
        if self.error:
            raise self.error
        return self.reply


def test_clip_text():
    assert clip_text("  short ") == "short"
    assert clip_text("x" * 10, 4) == "xxxx..."
    assert clip_text(None) == ""


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('{"summary": "s"}', {"summary": "s"}),
        ('```json\n{"summary": "s"}\n```', {"summary": "s"}),
        ('Sure! {"summary": "s"} hope it helps', {"summary": "s"}),
        ("no json here", None),
        ("[1, 2]", None),
        ("{broken", None),
    ],
)
def test_parse_json_reply(raw, expected):
    assert parse_json_reply(raw) == expected


def test_as_tags():
    assert as_tags(["a", " b ", "", "c", "d"]) == ["a", "b", "c"]
    assert as_tags("#ai, #chips") == ["ai", "chips"]
    assert as_tags(None) == []


def test_summary_result_from_reply():
    r = SummaryResult.from_reply(
        {"summary": "Head", "summary_tag": ["a", "b"], "detailed_summary": "Head\n\nMore."}
    )
    assert (r.success, r.summary, r.summary_tags) == (True, "Head", ["a", "b"])

    headline = SummaryResult.from_reply({"detailed_summary": "First line\n\nRest"})
    assert headline.summary == "First line"

    empty = SummaryResult.from_reply({"summary": " "})
    assert empty.success is False
    assert empty.error == "Empty summary in AI response"


def test_llm_summarizer_clips_content_and_parses():
    llm = _ScriptedLLM(reply='{"summary": "Chips", "summary_tag": ["ai"], "detailed_summary": "Chips\\n\\nx"}')
    summarizer = LLMSummarizer(llm, dict(DEFAULT_PROMPTS), clip_chars=10)

    result = asyncio.run(summarizer.summarize("Title", "y" * 50))

    assert result.success is True
    assert result.summary == "Chips"
    user = llm.messages[1]["content"]
    assert "y" * 10 + "..." in user
    assert "y" * 11 not in user
    assert "Title: Title" in user


def test_llm_summarizer_failures_are_results_not_exceptions():
    broken = LLMSummarizer(_ScriptedLLM(error=RuntimeError("down")), dict(DEFAULT_PROMPTS))
    assert asyncio.run(broken.summarize("t", "c")).error == "down"

    garbled = LLMSummarizer(_ScriptedLLM(reply="not json"), dict(DEFAULT_PROMPTS))
    assert asyncio.run(garbled.summarize("t", "c")).error == "Failed to parse AI response"


def test_fallback_only_when_primary_fails():
    primary = FakeSummarizer(fail_titles=["bad"])
    fallback = FakeSummarizer()
    chain = FallbackSummarizer(primary, fallback)

    assert asyncio.run(chain.summarize("good", "c")).success
    assert fallback.calls == []

    assert asyncio.run(chain.summarize("bad", "c")).success
    assert fallback.calls == ["bad"]


def test_create_summarizer_uses_edge_function_only_when_configured():
    local_only = create_summarizer({"summarize": {"edge_function": {"url": "/functions/v1/x", "api_key": "k"}}})
    assert isinstance(local_only, LLMSummarizer)

    no_key = create_summarizer({"summarize": {"edge_function": {"url": "https://x.supabase.co/f", "api_key": ""}}})
    assert isinstance(no_key, LLMSummarizer)

    chain = create_summarizer({"summarize": {"edge_function": {"url": "https://x.supabase.co/f", "api_key": "k"}}})
    assert isinstance(chain, FallbackSummarizer)
    assert isinstance(chain.primary, EdgeFunctionSummarizer)

    disabled = create_summarizer(
        {"summarize": {"edge_function": {"enabled": False, "url": "https://x.supabase.co/f", "api_key": "k"}}}
    )
    assert isinstance(disabled, LLMSummarizer)


def test_load_prompts_overrides_per_key(tmp_path):
    (tmp_path / "prompts.yaml").write_text("system: Be brief.\n", encoding="utf-8")
    cfg = {"_config_dir": str(tmp_path), "prompts": {"path": "prompts.yaml"}}
    prompts = load_prompts(cfg)
    assert prompts["system"] == "Be brief."
    assert prompts["article_user_template"] == DEFAULT_PROMPTS["article_user_template"]

    missing = load_prompts({"_config_dir": str(tmp_path), "prompts": {"path": "nope.yaml"}})
    assert missing == DEFAULT_PROMPTS
