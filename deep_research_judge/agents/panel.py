"""Panel evaluator — runs a set of judge roles concurrently over one context.

Each role renders its prompt template, calls its own model, and parses the
reply through the JSON repair pipeline. A role never raises: failures become
low-confidence stub results so the panel always returns one result per role.
"""

from __future__ import annotations

import asyncio
import json
import sys
import time
from datetime import date

from deep_research_judge.agents.base import JudgeCaller
from deep_research_judge.agents.roles import get_role_spec
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import EvaluatorResult, EvaluatorRole, PanelContext
from deep_research_judge.utils.json_repair import JudgeResponseError, parse_json_object
from deep_research_judge.utils.scores import coerce_scores, coerce_unit

JUDGE_SYSTEM = """\
You are an impartial evaluation judge for an autonomous research assistant. \
Score strictly against the criteria you are given. Output STRICT JSON only."""

DEFAULT_CONFIDENCE = 0.5
CALL_FAILURE_CONFIDENCE = 0.1
PARSE_FAILURE_CONFIDENCE = 0.3


def _format_plan(plan) -> str:
    if plan is None:
        return "(no plan provided)"
    if isinstance(plan, str):
        return plan
    return json.dumps(plan, indent=2, ensure_ascii=False, default=str)


def _format_queries(queries: list[str] | None) -> str:
    if not queries:
        return "(no search queries)"
    return "\n".join(f"- {q}" for q in queries)


def render_prompt(role: EvaluatorRole, context: PanelContext, *, today: date | None = None) -> str:
    """Substitute the context into a role's template."""
    today = today or date.today()
    prompt = get_role_spec(role).template
    replacements = {
        "{query}": context.get("query", ""),
        "{plan}": _format_plan(context.get("plan")),
        "{searchQueries}": _format_queries(context.get("search_queries")),
        "{sources}": context.get("sources") or "(no sources provided)",
        "{answer}": context.get("answer") or "(no answer provided)",
        "{currentDate}": today.isoformat(),
        "{currentYear}": str(today.year),
    }
    for placeholder, value in replacements.items():
        prompt = prompt.replace(placeholder, value)
    return prompt


def _stub_result(
    role: EvaluatorRole,
    model: str,
    *,
    confidence: float,
    critique: str,
    raw_response: str = "",
    latency_ms: int = 0,
    tokens_used: int = 0,
) -> EvaluatorResult:
    return EvaluatorResult(
        role=role,
        model=model,
        dimensions=list(get_role_spec(role).dimensions),
        scores={},
        confidence=confidence,
        critique=critique,
        explanation="",
        suggestions=[],
        raw_response=raw_response,
        latency_ms=latency_ms,
        tokens_used=tokens_used,
    )


class PanelEvaluator:
    """Fans one context out to several judge roles and collects their verdicts."""

    def __init__(
        self,
        caller: JudgeCaller,
        config: EvaluationConfig,
        *,
        today: date | None = None,
    ) -> None:
        self._caller = caller
        self._config = config
        self._today = today
        self._semaphore = asyncio.Semaphore(max(1, config.max_concurrent_judges))

    async def evaluate_role(self, role: EvaluatorRole, context: PanelContext) -> EvaluatorResult:
        """Run a single judge. Never raises."""
        model = self._config.model_for(role)
        spec = get_role_spec(role)
        prompt = render_prompt(role, context, today=self._today)

        start = time.monotonic()
        try:
            async with self._semaphore:
                text, usage = await self._caller.call(
                    system=JUDGE_SYSTEM,
                    messages=[{"role": "user", "content": prompt}],
                    agent_name=role.value,
                    model=model,
                )
        except Exception as e:
            print(f"WARNING: judge {role.value} ({model}) failed: {e}", file=sys.stderr)
            return _stub_result(
                role,
                model,
                confidence=CALL_FAILURE_CONFIDENCE,
                critique=f"Evaluation failed: {e}",
                latency_ms=int((time.monotonic() - start) * 1000),
            )

        latency_ms = int((time.monotonic() - start) * 1000)
        tokens_used = usage["input_tokens"] + usage["output_tokens"]

        try:
            data = parse_json_object(text)
        except JudgeResponseError as e:
            print(f"WARNING: judge {role.value} returned unparsable output: {e}", file=sys.stderr)
            return _stub_result(
                role,
                model,
                confidence=PARSE_FAILURE_CONFIDENCE,
                critique=f"Failed to parse evaluator response: {e}",
                raw_response=text,
                latency_ms=latency_ms,
                tokens_used=tokens_used,
            )

        confidence = coerce_unit(data.get("confidence"))
        suggestions = data.get("suggestions")
        return EvaluatorResult(
            role=role,
            model=model,
            dimensions=list(spec.dimensions),
            scores=coerce_scores(data.get("scores")),
            confidence=DEFAULT_CONFIDENCE if confidence is None else confidence,
            critique=str(data.get("critique") or ""),
            explanation=str(data.get("explanation") or ""),
            suggestions=[
                s.strip() for s in suggestions if isinstance(s, str) and s.strip()
            ]
            if isinstance(suggestions, list)
            else [],
            raw_response=text,
            latency_ms=latency_ms,
            tokens_used=tokens_used,
        )

    async def evaluate_with_panel(
        self, roles: list[EvaluatorRole] | tuple[EvaluatorRole, ...], context: PanelContext
    ) -> list[EvaluatorResult]:
        """Run every role concurrently. One result per role, in input order."""
        return list(await asyncio.gather(*(self.evaluate_role(r, context) for r in roles)))
