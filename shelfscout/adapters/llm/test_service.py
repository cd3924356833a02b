"""
Tests for LLM Service adapter.
"""

from __future__ import annotations

import json

import httpx
import pytest

from shelfscout.config import LLMError, Settings

from .service import LLMService, create_llm_service, parse_json_object


def make_service(provider: str, handler, api_key: str | None = "test-key") -> LLMService:
    transport = httpx.MockTransport(handler)
    return LLMService(
        provider,
        "test-model",
        api_key=api_key,
        http_client=httpx.AsyncClient(transport=transport),
    )


# --- Provider Tests ---


async def test_openai_json_mode() -> None:
    """Test OpenAI request shape and JSON parsing."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"content": '{"primaryQuery": "dune"}'}}],
                "usage": {"total_tokens": 42},
            },
        )

    llm = make_service("openai", handler)
    result = await llm.generate_json("Query: dune", system_instruction="Extract hints.")

    assert result == {"primaryQuery": "dune"}
    request = requests[0]
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0]["role"] == "system"
    assert "valid JSON" in body["messages"][0]["content"]


async def test_openai_requires_key() -> None:
    llm = make_service("openai", lambda request: httpx.Response(200), api_key=None)

    with pytest.raises(LLMError):
        await llm.generate("hello")


async def test_gemini_generate() -> None:
    """Test Gemini request shape and text extraction."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "candidates": [{"content": {"parts": [{"text": " Harry Potter "}]}}],
                "usageMetadata": {"totalTokenCount": 12},
            },
        )

    llm = make_service("gemini", handler)
    response = await llm.generate("הארי פוטר", system_instruction="Translate to English.")

    assert response.text == "Harry Potter"
    assert response.provider == "gemini"
    assert response.tokens_used == 12
    request = requests[0]
    assert request.url.path.endswith("/models/test-model:generateContent")
    assert request.headers["x-goog-api-key"] == "test-key"
    body = json.loads(request.content)
    assert body["systemInstruction"]["parts"][0]["text"] == "Translate to English."
    assert "responseMimeType" not in body["generationConfig"]


async def test_ollama_json_mode() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"response": '{"rank": []}', "eval_count": 5})

    llm = make_service("ollama", handler, api_key=None)
    result = await llm.generate_json("Rank these")

    assert result == {"rank": []}
    body = json.loads(requests[0].content)
    assert requests[0].url.path == "/api/generate"
    assert body["format"] == "json"
    assert body["stream"] is False


# --- Error Tests ---


async def test_rate_limit_raises_llm_error() -> None:
    llm = make_service("openai", lambda request: httpx.Response(429))

    with pytest.raises(LLMError) as exc_info:
        await llm.generate("hello")

    assert exc_info.value.details["code"] == "RATE_LIMITED"


async def test_server_error_raises_llm_error() -> None:
    llm = make_service("gemini", lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(LLMError) as exc_info:
        await llm.generate("hello")

    assert exc_info.value.details["status"] == 500


async def test_transport_error_raises_llm_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(LLMError):
        await make_service("ollama", handler).generate("hello")


@pytest.mark.parametrize(
    ("provider", "payload"),
    [
        ("openai", {"choices": ["oops"]}),
        ("openai", {"choices": [{"message": {"content": 7}}]}),
        ("gemini", {"candidates": ["oops"]}),
        ("gemini", {"candidates": [{"content": {"parts": "text"}}]}),
    ],
)
async def test_malformed_body_raises_llm_error(provider: str, payload: dict) -> None:
    llm = make_service(provider, lambda request: httpx.Response(200, json=payload))

    with pytest.raises(LLMError) as exc_info:
        await llm.generate("hello")

    assert exc_info.value.details["provider"] == provider


def test_unknown_provider() -> None:
    with pytest.raises(ValueError):
        LLMService("claude", "x")


# --- Parsing Tests ---


def test_parse_json_object_with_fences() -> None:
    text = 'Sure! ```json\n{"titleHints": ["Dune"]}\n```'
    assert parse_json_object(text) == {"titleHints": ["Dune"]}


def test_parse_json_object_rejects_non_objects() -> None:
    with pytest.raises(LLMError):
        parse_json_object("[1, 2, 3]")
    with pytest.raises(LLMError):
        parse_json_object("no json here")


# --- Factory Tests ---


def test_create_llm_service_disabled() -> None:
    assert create_llm_service(Settings(llm_provider="none")) is None
    assert create_llm_service(Settings(llm_provider="openai", openai_api_key=None)) is None


def test_create_llm_service_openai() -> None:
    llm = create_llm_service(
        Settings(llm_provider="openai", openai_api_key="sk-test", chat_model="gpt-4o-mini")
    )

    assert llm is not None
    assert llm.provider == "openai"
    assert llm.model == "gpt-4o-mini"
