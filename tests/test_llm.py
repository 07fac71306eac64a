"""Tests for the LLM post-processing client.

No live provider calls: every request goes to a respx route.
"""

import json

import httpx
import pytest
import respx

from audiotext.asr.llm import MAX_TOPICS, SUMMARY_FAILED, LLMClient, parse_topics

BASE = "https://llm.test/v1"


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def llm():
    return LLMClient(BASE, "sk-test", model="test-model")


@pytest.mark.asyncio
@respx.mock
async def test_enhance_returns_model_text_and_sends_context(llm):
    route = respx.post(f"{BASE}/chat/completions").respond(200, json=_completion("Hello, world."))
    out = await llm.enhance("hello world", context="podcast intro")

    assert out == "Hello, world."
    sent = json.loads(route.calls.last.request.content)
    assert sent["model"] == "test-model"
    assert sent["messages"][0]["role"] == "system"
    assert "Context: podcast intro" in sent["messages"][1]["content"]
    assert "hello world" in sent["messages"][1]["content"]


@pytest.mark.asyncio
@respx.mock
async def test_enhance_returns_input_unchanged_on_upstream_500(llm):
    respx.post(f"{BASE}/chat/completions").respond(500, json={"error": "down"})
    assert await llm.enhance("keep me") == "keep me"


@pytest.mark.asyncio
@respx.mock
async def test_enhance_returns_input_on_timeout(llm):
    respx.post(f"{BASE}/chat/completions").mock(side_effect=httpx.ReadTimeout("slow"))
    assert await llm.enhance("keep me") == "keep me"


@pytest.mark.asyncio
async def test_enhance_without_key_is_a_no_op():
    assert await LLMClient(BASE, None).enhance("as is") == "as is"


@pytest.mark.asyncio
@respx.mock
async def test_summarize_kinds_use_different_prompts(llm):
    route = respx.post(f"{BASE}/chat/completions").respond(200, json=_completion("- point"))
    assert await llm.summarize("text", "bullet_points") == "- point"
    assert "bullet-point summary" in json.loads(route.calls.last.request.content)["messages"][1]["content"]


@pytest.mark.asyncio
@respx.mock
async def test_summarize_failure_returns_fixed_message(llm):
    respx.post(f"{BASE}/chat/completions").respond(502)
    assert await llm.summarize("text") == SUMMARY_FAILED


@pytest.mark.asyncio
async def test_summarize_rejects_unknown_kind(llm):
    with pytest.raises(ValueError):
        await llm.summarize("text", "haiku")


@pytest.mark.asyncio
@respx.mock
async def test_topics_are_split_and_capped(llm):
    topics = ", ".join(f"topic{i}" for i in range(15))
    respx.post(f"{BASE}/chat/completions").respond(200, json=_completion(topics))
    out = await llm.extract_key_topics("text")
    assert len(out) == MAX_TOPICS
    assert out[0] == "topic0"


@pytest.mark.asyncio
@respx.mock
async def test_topics_failure_is_empty_list(llm):
    respx.post(f"{BASE}/chat/completions").respond(200, json={"unexpected": True})
    assert await llm.extract_key_topics("text") == []


def test_parse_topics_drops_blanks():
    assert parse_topics(" budget, ,  hiring ,") == ["budget", "hiring"]
