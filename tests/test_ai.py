# tests/test_ai.py
"""AI client against httpx.MockTransport, and the /api/analyze endpoint."""

from __future__ import annotations

import json

import httpx
import pytest

from ledger.config import Settings
from ledger.deps import get_ai_client
from ledger.errors import UpstreamError
from ledger.main import app as fastapi_app
from ledger.services.ai import MAX_PAYLOAD_CHARS, PLACEHOLDER, AIClient


def _settings(**overrides):
    values = dict(
        ai_provider="deepseek",
        deepseek_api_key="sk-test",
        deepseek_api_base="https://llm.test/",
        deepseek_model="deepseek-chat",
    )
    values.update(overrides)
    return Settings(**values)


def _client(seen, status=200, content="  ## Overview\nAll good.  "):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json={"choices": [{"message": {"content": content}}]})

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_no_key_returns_placeholder_without_request():
    seen = []
    ai = AIClient(_settings(deepseek_api_key=None), client=_client(seen))
    assert ai.chat([{"role": "user", "content": "hi"}]) == PLACEHOLDER
    assert seen == []


def test_chat_request_shape():
    seen = []
    ai = AIClient(_settings(), client=_client(seen))

    text = ai.chat([{"role": "user", "content": "hi"}])

    assert text == "## Overview\nAll good."
    [request] = seen
    assert str(request.url) == "https://llm.test/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "deepseek-chat"
    assert body["temperature"] == 0.3


def test_openai_provider_uses_its_settings():
    seen = []
    ai = AIClient(
        _settings(ai_provider="OpenAI", openai_api_key="sk-oa", openai_api_base="https://oa.test/v1"),
        client=_client(seen),
    )
    ai.chat([{"role": "user", "content": "hi"}])
    assert str(seen[0].url) == "https://oa.test/v1/chat/completions"
    assert seen[0].headers["Authorization"] == "Bearer sk-oa"


@pytest.mark.parametrize("status", [400, 401, 500, 503])
def test_non_2xx_raises_upstream_error(status):
    ai = AIClient(_settings(), client=_client([], status=status))
    with pytest.raises(UpstreamError):
        ai.chat([{"role": "user", "content": "hi"}])


def test_network_error_raises_upstream_error():
    def handler(request):
        raise httpx.ConnectError("no route", request=request)

    ai = AIClient(_settings(), client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(UpstreamError):
        ai.chat([{"role": "user", "content": "hi"}])


def test_analyze_month_truncates_payload():
    seen = []
    ai = AIClient(_settings(), client=_client(seen))
    transactions = [
        {"type": "expense", "category": "food", "amount": 12.5, "currency": "USD", "note": "x" * 200}
        for _ in range(100)
    ]

    ai.analyze_month("2025-06", transactions)

    messages = json.loads(seen[0].content)["messages"]
    assert [m["role"] for m in messages] == ["system", "user"]
    user = messages[1]["content"]
    assert "2025-06" in user
    assert "USD" in user
    assert len(user) < MAX_PAYLOAD_CHARS + 1000


def test_analyze_endpoint_loads_month_from_db(client):
    client.post(
        "/api/transactions",
        json={"type": "expense", "category": "food", "amount": 42, "date": "2025-06-03", "merchant": "Deli"},
    )
    seen = []
    fastapi_app.dependency_overrides[get_ai_client] = lambda: AIClient(_settings(), client=_client(seen))
    try:
        r = client.post("/api/analyze", json={"month": "2025-06"})
    finally:
        fastapi_app.dependency_overrides.pop(get_ai_client, None)

    assert r.status_code == 200
    assert r.json()["data"]["summary"] == "## Overview\nAll good."
    assert "Deli" in json.loads(seen[0].content)["messages"][1]["content"]


def test_analyze_endpoint_rejects_bad_month(client):
    r = client.post("/api/analyze", json={"month": "2025-13"})
    assert r.status_code == 400
    assert r.json()["details"][0]["field"] == "month"
