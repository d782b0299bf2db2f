"""Test fixtures and mocks."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import (
    EvaluatorResult,
    EvaluatorRole,
    RetrievedContent,
    TokenUsage,
)
from deep_research_judge.scoring.embedding import cosine_similarity


class FakeEmbeddingProvider:
    """Deterministic fake for testing — encodes text as character frequency vector."""

    def __init__(self, fail_on: str | None = None) -> None:
        self._fail_on = fail_on
        self.calls: list[str] = []

    def encode(self, text: str) -> list[float]:
        self.calls.append(text)
        if self._fail_on and self._fail_on in text:
            raise RuntimeError("embedding backend unavailable")
        # Simple: 26-dim vector of letter frequencies
        text_lower = text.lower()
        total = max(len(text_lower), 1)
        return [text_lower.count(chr(ord("a") + i)) / total for i in range(26)]

    def similarity(self, a: list[float], b: list[float]) -> float:
        return cosine_similarity(a, b)


def make_usage(agent: str = "test-agent", model: str = "claude-sonnet-4-6") -> TokenUsage:
    return TokenUsage(
        agent=agent,
        model=model,
        input_tokens=100,
        output_tokens=50,
        cost_usd=0.001,
        timestamp="2026-02-20T00:00:00Z",
    )


def judge_reply(scores: dict[str, Any], confidence: Any = 0.9, **extra) -> str:
    """Serialize a panel judge reply the way the model returns it."""
    payload = {
        "scores": scores,
        "confidence": confidence,
        "critique": extra.pop("critique", ""),
        "explanation": extra.pop("explanation", ""),
        "suggestions": extra.pop("suggestions", []),
    }
    payload.update(extra)
    return json.dumps(payload)


def make_caller(responses: dict[str, Any] | None = None, default: Any = None) -> MagicMock:
    """Mock JudgeCaller keyed by agent_name.

    A reply may be a string, an exception (raised), or a callable taking the
    messages list and returning a string.
    """
    responses = responses or {}

    async def _call(
        *,
        system: str,
        messages: list[dict],
        agent_name: str,
        model: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.0,
    ):
        reply = responses.get(agent_name, default)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(messages)
        if reply is None:
            raise AssertionError(f"unexpected judge call for {agent_name}")
        return reply, make_usage(agent_name, model or "claude-sonnet-4-6")

    caller = MagicMock()
    caller.call = AsyncMock(side_effect=_call)
    return caller


def make_result(
    role: EvaluatorRole,
    scores: dict[str, float],
    confidence: float = 0.9,
    critique: str = "",
    **overrides,
) -> EvaluatorResult:
    result = EvaluatorResult(
        role=role,
        model="claude-sonnet-4-6",
        dimensions=list(scores),
        scores=scores,
        confidence=confidence,
        critique=critique,
        explanation="",
        suggestions=[],
        raw_response="",
        latency_ms=10,
        tokens_used=150,
    )
    result.update(overrides)
    return result


@pytest.fixture
def eval_config() -> EvaluationConfig:
    return EvaluationConfig()


@pytest.fixture
def fake_embedder() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def sample_sources() -> list[RetrievedContent]:
    return [
        RetrievedContent(
            url="https://bluenote.example.com/events/jazz-concert-nov-29-2024",
            title="Jazz Night at Blue Note",
            content=(
                "Jazz Night. Date: Nov 29, 2024. Time: 8:00 PM. "
                "Venue: Blue Note, 131 West 3rd Street. Tickets: $25"
            ),
        ),
        RetrievedContent(
            url="https://en.wikipedia.org/wiki/Blue_Note_Jazz_Club",
            title="Blue Note Jazz Club - Wikipedia",
            content=(
                "The Blue Note Jazz Club is a jazz club and restaurant located at "
                "131 West 3rd Street in Greenwich Village, New York City. "
                "It opened in 1981."
            ),
        ),
    ]
