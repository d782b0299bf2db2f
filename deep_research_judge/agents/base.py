"""JudgeCaller — shared Anthropic client for every judge role.

The model is chosen per call, so panel judges, the escalation judge and the
confidence pipeline share one client, one concurrency limit and one usage log.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone

import anthropic
from anthropic._exceptions import OverloadedError

from deep_research_judge.contracts import TokenUsage

# USD per million tokens
_PRICING: dict[str, tuple[float, float]] = {
    "claude-opus-4-6": (15.0, 75.0),
    "claude-sonnet-4-6": (3.0, 15.0),
    "claude-haiku-4-5-20251001": (1.0, 5.0),
}
_DEFAULT_PRICING = (3.0, 15.0)

# Seconds before the next attempt, by failure kind
_OVERLOAD_BACKOFF = 2
_API_ERROR_BACKOFF = 1


class JudgeCallError(RuntimeError):
    """Raised when a judge call fails on every attempt (and on the fallback model)."""


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    input_rate, output_rate = _PRICING.get(model, _DEFAULT_PRICING)
    return (input_tokens * input_rate + output_tokens * output_rate) / 1_000_000


class JudgeCaller:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        max_concurrent: int = 5,
        max_retries: int = 3,
        fallback_model: str | None = None,
    ) -> None:
        self.model = model
        self.fallback_model = fallback_model
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent))
        self._max_retries = max(1, max_retries)
        self._usage_log: list[TokenUsage] = []

    async def call(
        self,
        *,
        system: str,
        messages: list[dict],
        agent_name: str,
        model: str | None = None,
        max_tokens: int = 2048,
        temperature: float = 0.0,
    ) -> tuple[str, TokenUsage]:
        """Send one judge request and return (response_text, token_usage).

        Overload and rate-limit errors back off exponentially. If every
        attempt was overloaded and a different fallback model is configured,
        one last request goes to the fallback. Raises JudgeCallError otherwise.
        """
        model = model or self.model
        request = dict(
            system=system, messages=messages, max_tokens=max_tokens, temperature=temperature
        )
        async with self._semaphore:
            last_error = ""
            overloaded = False
            for attempt in range(1, self._max_retries + 1):
                try:
                    return await self._request(model, agent_name, request)
                except OverloadedError:
                    overloaded = True
                    last_error = "overloaded"
                    wait = _OVERLOAD_BACKOFF**attempt
                    print(
                        f"WARNING: {model} overloaded (529), judge {agent_name} "
                        f"attempt {attempt}/{self._max_retries}, waiting {wait}s",
                        file=sys.stderr,
                    )
                    await asyncio.sleep(wait)
                except anthropic.RateLimitError:
                    last_error = "rate_limit"
                    await asyncio.sleep(_OVERLOAD_BACKOFF**attempt)
                except anthropic.APIError as e:
                    last_error = str(e)
                    if attempt < self._max_retries:
                        await asyncio.sleep(_API_ERROR_BACKOFF)

            fallback = self.fallback_model
            if overloaded and fallback and fallback != model:
                print(
                    f"WARNING: {model} still overloaded, falling back to {fallback} "
                    f"for {agent_name}",
                    file=sys.stderr,
                )
                try:
                    return await self._request(fallback, agent_name, request)
                except anthropic.APIError as e:
                    last_error = f"fallback ({fallback}) also failed: {e}"

        raise JudgeCallError(
            f"Judge {agent_name} failed after {self._max_retries} retries: {last_error}"
        )

    async def _request(self, model: str, agent_name: str, request: dict) -> tuple[str, TokenUsage]:
        response = await self._client.messages.create(model=model, **request)
        text = "".join(b.text for b in response.content if b.type == "text")
        return text, self._track_usage(response, agent_name, model)

    def _track_usage(self, response, agent_name: str, model: str) -> TokenUsage:
        input_tokens = response.usage.input_tokens
        output_tokens = response.usage.output_tokens
        usage = TokenUsage(
            agent=agent_name,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=round(estimate_cost(model, input_tokens, output_tokens), 6),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self._usage_log.append(usage)
        return usage

    @property
    def usage_log(self) -> list[TokenUsage]:
        return list(self._usage_log)

    @property
    def total_tokens(self) -> int:
        return sum(u["input_tokens"] + u["output_tokens"] for u in self._usage_log)

    @property
    def total_cost(self) -> float:
        return sum(u["cost_usd"] for u in self._usage_log)

    def usage_by_agent(self) -> dict[str, dict[str, float]]:
        """Calls, tokens and cost per judge role."""
        summary: dict[str, dict[str, float]] = {}
        for u in self._usage_log:
            entry = summary.setdefault(u["agent"], {"calls": 0, "tokens": 0, "cost_usd": 0.0})
            entry["calls"] += 1
            entry["tokens"] += u["input_tokens"] + u["output_tokens"]
            entry["cost_usd"] = round(entry["cost_usd"] + u["cost_usd"], 6)
        return summary
