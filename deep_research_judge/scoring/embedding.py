"""Embedding providers for passage retrieval.

EmbeddingProvider protocol + two implementations:
- FastEmbedProvider: local ONNX model via fastembed (lazy-loaded).
- OllamaEmbeddingProvider: remote embedding endpoint over HTTP.

encode() is synchronous; async callers run it in a worker thread.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

if TYPE_CHECKING:
    from deep_research_judge.config import Settings

# --- Protocol ---


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers (structural subtyping)."""

    def encode(self, text: str) -> list[float]: ...

    def similarity(self, a: list[float], b: list[float]) -> float: ...


# --- Cosine similarity (standalone, no numpy) ---


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Compute cosine similarity between two vectors without numpy."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


# --- FastEmbed provider ---


class FastEmbedProvider:
    """Embedding provider backed by fastembed (ONNX, MIT license).

    Lazy-loads the model on first encode() call to avoid import-time cost.
    """

    def __init__(self, model_name: str = "BAAI/bge-small-en-v1.5") -> None:
        self._model_name = model_name
        self._model = None

    def _ensure_model(self) -> None:
        if self._model is None:
            from fastembed import TextEmbedding

            self._model = TextEmbedding(model_name=self._model_name)

    def encode(self, text: str) -> list[float]:
        """Encode a single text string into a float vector."""
        self._ensure_model()
        # fastembed returns a generator of numpy arrays
        embeddings = list(self._model.embed([text]))
        if embeddings:
            return embeddings[0].tolist()
        return []

    def similarity(self, a: list[float], b: list[float]) -> float:
        return cosine_similarity(a, b)


# --- Ollama provider ---


class OllamaEmbeddingProvider:
    """Embedding provider backed by an Ollama server's /api/embed endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model_name: str = "nomic-embed-text",
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._model_name = model_name
        self._client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def encode(self, text: str) -> list[float]:
        """Encode text. Raises httpx.HTTPError or ValueError on a bad response."""
        resp = self._client.post("/api/embed", json={"model": self._model_name, "input": text})
        resp.raise_for_status()
        embeddings = resp.json().get("embeddings") or []
        if not embeddings:
            raise ValueError(f"Ollama returned no embeddings for model {self._model_name}")
        return [float(x) for x in embeddings[0]]

    def similarity(self, a: list[float], b: list[float]) -> float:
        return cosine_similarity(a, b)

    def close(self) -> None:
        self._client.close()


# --- Provider factory ---


def get_embedding_provider(settings: Settings) -> EmbeddingProvider | None:
    """Build the configured provider. Returns None if fastembed is unavailable."""
    if settings.embedding_backend == "ollama":
        return OllamaEmbeddingProvider(settings.ollama_url, settings.embedding_model)
    try:
        import fastembed  # noqa: F401

        return FastEmbedProvider(model_name=settings.embedding_model)
    except ImportError:
        return None
