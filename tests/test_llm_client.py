"""Tests for the OpenRouter chat completion client."""

from __future__ import annotations

import json

import httpx
import pytest

from boardbot.core import llm
from boardbot.core.errors import LLMError
from boardbot.core.llm import ChatConfig, LLMClient, get_llm_client


def make_client(handler) -> LLMClient:
    return LLMClient(
        api_key="test-key",
        base_url="https://llm.test/api/v1",
        model="test/model",
        transport=httpx.MockTransport(handler),
    )


def completion_body(content: str) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 5},
    }


class TestComplete:
    @pytest.mark.asyncio
    async def test_sends_intent_request(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=completion_body('{"action": "list"}'))

        client = make_client(handler)
        try:
            reply = await client.complete("system prompt", "list my tasks")
        finally:
            await client.close()

        assert reply == '{"action": "list"}'
        [request] = seen
        assert request.url == "https://llm.test/api/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        payload = json.loads(request.content)
        assert payload["model"] == "test/model"
        assert payload["temperature"] == 0.1
        assert payload["max_tokens"] == 200
        assert payload["messages"] == [
            {"role": "system", "content": "system prompt"},
            {"role": "user", "content": "list my tasks"},
        ]

    @pytest.mark.asyncio
    async def test_config_model_overrides_default(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["model"] == "other/model"
            return httpx.Response(200, json=completion_body("ok"))

        client = make_client(handler)
        try:
            reply = await client.chat_completion(
                [{"role": "user", "content": "hi"}], ChatConfig(model="other/model"),
            )
        finally:
            await client.close()

        assert reply == "ok"

    @pytest.mark.asyncio
    async def test_missing_choices_yield_empty_text(self):
        client = make_client(lambda request: httpx.Response(200, json={"choices": []}))
        try:
            assert await client.complete("s", "u") == ""
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(400, json={"error": "bad request"})

        client = make_client(handler)
        try:
            with pytest.raises(LLMError) as exc_info:
                await client.complete("s", "u")
        finally:
            await client.close()

        assert exc_info.value.status_code == 400
        assert calls == 1


class TestRetryClassification:
    def test_retryable(self):
        assert llm._is_retryable_llm_error(LLMError("x", status_code=429))
        assert llm._is_retryable_llm_error(LLMError("x", status_code=503))
        assert llm._is_retryable_llm_error(httpx.ReadTimeout("slow"))

    def test_not_retryable(self):
        assert not llm._is_retryable_llm_error(LLMError("x", status_code=401))
        assert not llm._is_retryable_llm_error(LLMError("x"))
        assert not llm._is_retryable_llm_error(ValueError("x"))


class TestSharedClient:
    def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(llm.settings, "openrouter_api_key", "")
        with pytest.raises(RuntimeError):
            LLMClient()

    def test_none_without_key(self, monkeypatch):
        monkeypatch.setattr(llm.settings, "openrouter_api_key", "")
        monkeypatch.setattr(llm, "_client", None)
        assert get_llm_client() is None
