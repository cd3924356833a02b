"""
Tests for embedding providers.
"""

from __future__ import annotations

import json

import httpx
import pytest

from shelfscout.config import EmbeddingError, Settings

from .service import OpenAIEmbedder, SentenceTransformerEmbedder, create_embedder


def make_embedder(handler) -> OpenAIEmbedder:
    return OpenAIEmbedder(
        api_key="sk-test",
        dimension=3,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        backoff=0,
    )


async def test_embed_preserves_input_order() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "data": [
                    {"index": 1, "embedding": [0.0, 1.0, 0.0]},
                    {"index": 0, "embedding": [1.0, 0.0, 0.0]},
                ]
            },
        )

    vectors = await make_embedder(handler).embed(["The Hobbit", "Dune"])

    assert vectors == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]
    body = json.loads(requests[0].content)
    assert body == {"model": "text-embedding-3-small", "input": ["The Hobbit", "Dune"]}
    assert requests[0].headers["Authorization"] == "Bearer sk-test"


async def test_empty_batch_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("unexpected request")

    assert await make_embedder(handler).embed([]) == []


async def test_retries_transient_errors() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0, 0.0]}]})

    assert await make_embedder(handler).embed(["Dune"]) == [[1.0, 0.0, 0.0]]
    assert len(calls) == 2


async def test_size_mismatch_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0, 0.0]}]})

    with pytest.raises(EmbeddingError):
        await make_embedder(handler).embed(["a", "b"])


async def test_client_error_is_not_retried() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401)

    with pytest.raises(EmbeddingError) as exc_info:
        await make_embedder(handler).embed(["Dune"])

    assert exc_info.value.details["status"] == 401
    assert len(calls) == 1


@pytest.mark.parametrize(
    "items",
    [["oops"], [{"index": "first", "embedding": [1.0, 0.0, 0.0]}], [{"index": 0}]],
)
async def test_malformed_items_raise_embedding_error(items: list) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": items})

    with pytest.raises(EmbeddingError):
        await make_embedder(handler).embed(["Dune"])


def test_create_embedder() -> None:
    assert create_embedder(Settings(embedding_provider="none")) is None
    assert create_embedder(Settings(embedding_provider="openai", openai_api_key=None)) is None

    openai = create_embedder(
        Settings(embedding_provider="openai", openai_api_key="sk-test", embedding_dimension=512)
    )
    assert isinstance(openai, OpenAIEmbedder)
    assert openai.dimension == 512

    local = create_embedder(Settings(embedding_provider="local"))
    assert isinstance(local, SentenceTransformerEmbedder)
