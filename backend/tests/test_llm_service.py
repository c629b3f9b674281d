from __future__ import annotations

import json
from typing import Any, Dict, List

import httpx
import pytest
from openai import AsyncOpenAI

from storefront.core.config import settings
from storefront.core.exceptions import LLMProviderError
from storefront.services.ai.llm_service import LLMService


def _completion(message: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o-mini",
        "choices": [{"index": 0, "message": message, "finish_reason": "stop"}],
    }


def _service(monkeypatch: pytest.MonkeyPatch, handler, *, timeout: float = 12.0) -> LLMService:
    monkeypatch.setattr(settings, "LLM_TIMEOUT_SECONDS", timeout)
    service = LLMService()
    service.client = AsyncOpenAI(
        api_key="sk-test",
        timeout=service.timeout,
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return service


@pytest.mark.asyncio
async def test_chat_calls_keep_the_configured_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: List[Dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.extensions["timeout"])
        return httpx.Response(200, json=_completion({"role": "assistant", "content": "hi"}))

    service = _service(monkeypatch, handler)

    await service.generate_chat_with_tools(messages=[{"role": "user", "content": "hi"}], tools=[])
    await service.generate_chat_response(messages=[{"role": "user", "content": "hi"}])
    await service.generate_chat_response(messages=[{"role": "user", "content": "hi"}], timeout=3.0)

    assert [timeouts["read"] for timeouts in seen] == [12.0, 12.0, 3.0]


@pytest.mark.asyncio
async def test_tool_calls_are_decoded(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["tool_choice"] == "auto"
        message = {
            "role": "assistant",
            "content": None,
            "tool_calls": [
                {"id": "call_1", "type": "function", "function": {"name": "search_products", "arguments": '{"query": "watch"}'}},
                {"id": "call_2", "type": "function", "function": {"name": "search_policies", "arguments": "{broken"}},
            ],
        }
        return httpx.Response(200, json=_completion(message))

    out = await _service(monkeypatch, handler).generate_chat_with_tools(
        messages=[{"role": "user", "content": "watch"}],
        tools=[],
    )

    assert out["content"] == ""
    assert out["tool_calls"][0]["arguments"] == {"query": "watch"}
    assert out["tool_calls"][1]["argument_error"]


@pytest.mark.asyncio
async def test_provider_errors_are_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": {"message": "overloaded"}})

    with pytest.raises(LLMProviderError):
        await _service(monkeypatch, handler).generate_chat_response(messages=[{"role": "user", "content": "hi"}])
