"""Tests for scoring.embedding — cosine similarity, Ollama provider, factory."""

from __future__ import annotations

import json

import httpx
import pytest
from conftest import FakeEmbeddingProvider

from deep_research_judge.config import Settings
from deep_research_judge.scoring.embedding import (
    EmbeddingProvider,
    FastEmbedProvider,
    OllamaEmbeddingProvider,
    cosine_similarity,
    get_embedding_provider,
)


def _ollama(handler) -> OllamaEmbeddingProvider:
    client = httpx.Client(base_url="http://ollama.test", transport=httpx.MockTransport(handler))
    return OllamaEmbeddingProvider(model_name="nomic-embed-text", client=client)


class TestCosineSimilarity:
    def test_identical_vectors(self):
        v = [1.0, 2.0, 3.0]
        assert abs(cosine_similarity(v, v) - 1.0) < 1e-6

    def test_orthogonal_vectors(self):
        assert abs(cosine_similarity([1.0, 0.0], [0.0, 1.0])) < 1e-6

    def test_mismatched_or_empty(self):
        assert cosine_similarity([1.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([], []) == 0.0

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


class TestProtocol:
    def test_fake_satisfies_protocol(self):
        assert isinstance(FakeEmbeddingProvider(), EmbeddingProvider)

    def test_ollama_satisfies_protocol(self):
        assert isinstance(_ollama(lambda r: httpx.Response(200)), EmbeddingProvider)


class TestOllamaEmbeddingProvider:
    def test_encode(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"embeddings": [[0.1, 0.2, 0.3]]})

        vector = _ollama(handler).encode("jazz night")

        assert vector == [0.1, 0.2, 0.3]
        assert seen["path"] == "/api/embed"
        assert seen["body"] == {"model": "nomic-embed-text", "input": "jazz night"}

    def test_http_error_raises(self):
        provider = _ollama(lambda r: httpx.Response(500, json={"error": "model not loaded"}))
        with pytest.raises(httpx.HTTPStatusError):
            provider.encode("jazz")

    def test_empty_embeddings_raise(self):
        provider = _ollama(lambda r: httpx.Response(200, json={"embeddings": []}))
        with pytest.raises(ValueError, match="no embeddings"):
            provider.encode("jazz")


class TestFactory:
    def test_ollama_backend(self):
        settings = Settings(embedding_backend="ollama", embedding_model="nomic-embed-text")
        provider = get_embedding_provider(settings)
        assert isinstance(provider, OllamaEmbeddingProvider)
        provider.close()

    def test_fastembed_backend_is_lazy(self):
        pytest.importorskip("fastembed")
        provider = get_embedding_provider(Settings(embedding_backend="fastembed"))
        assert isinstance(provider, FastEmbedProvider)
        assert provider._model is None
