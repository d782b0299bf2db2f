"""Escalation handler — one stronger-model call to settle a contested panel."""

from __future__ import annotations

import json
import sys
import time

from deep_research_judge.agents.base import JudgeCaller
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import (
    EscalationResult,
    EscalationTrigger,
    EvaluatorResult,
    FinalVerdict,
)
from deep_research_judge.utils.json_repair import parse_json_object
from deep_research_judge.utils.scores import coerce_scores, coerce_unit

TRIGGER_DESCRIPTIONS: dict[EscalationTrigger, str] = {
    EscalationTrigger.LOW_CONFIDENCE: "All evaluators reported low confidence (< 0.6)",
    EscalationTrigger.DISAGREEMENT: "Evaluators significantly disagreed (scores differ by > 0.3)",
    EscalationTrigger.BORDERLINE: (
        "Aggregated score is borderline (within 0.05 of pass threshold)"
    ),
}

ESCALATION_SYSTEM = """\
You are a senior evaluation judge. A panel of smaller judges could not reach \
a reliable verdict and the decision has been escalated to you. Output STRICT JSON only."""

ESCALATION_TEMPLATE = """\
## Why this was escalated
{trigger}

## User Query
{query}

## Content Under Review
{content}

## Panel Results
{panelResults}

## Instructions
Decide how much to trust each panel judge, resolve the scores yourself, and give a verdict:
"pass" (good enough to proceed), "iterate" (fixable, try again) or "fail".

## Response Format (JSON)
{
  "trustDecisions": {"<role>": {"trustScore": <0.0-1.0>, "reasoning": "<why>"}},
  "resolvedScores": {"<dimension>": <0.0-1.0>},
  "finalVerdict": "pass" | "fail" | "iterate",
  "overallConfidence": <0.0-1.0>,
  "synthesis": "<short narrative of your reasoning>",
  "recommendations": ["<concrete improvement>"]
}

Respond ONLY with valid JSON."""


def format_panel_results(results: list[EvaluatorResult]) -> str:
    blocks = []
    for r in results:
        role = getattr(r["role"], "value", r["role"])
        blocks.append(
            f"### {role} ({r['model']})\n"
            f"- Confidence: {r['confidence']:.2f}\n"
            f"- Scores: {json.dumps(r['scores'])}\n"
            f"- Critique: {r['critique'] or '(none)'}"
        )
    return "\n\n".join(blocks) if blocks else "(no panel results)"


def _format_content(content) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, indent=2, ensure_ascii=False, default=str)


def _flatten_trust(raw) -> dict[str, float]:
    """role -> trustScore; entries without a numeric trustScore are dropped."""
    if not isinstance(raw, dict):
        return {}
    trust: dict[str, float] = {}
    for role, decision in raw.items():
        if not isinstance(decision, dict):
            continue
        score = coerce_unit(decision.get("trustScore"))
        if score is not None:
            trust[str(role)] = score
    return trust


class EscalationHandler:
    """Calls the configured escalation model. Never raises."""

    def __init__(self, caller: JudgeCaller, config: EvaluationConfig) -> None:
        self._caller = caller
        self._model = config.escalation_model

    async def escalate(
        self,
        trigger: EscalationTrigger,
        query: str,
        content,
        panel_results: list[EvaluatorResult],
    ) -> EscalationResult:
        prompt = (
            ESCALATION_TEMPLATE.replace("{trigger}", TRIGGER_DESCRIPTIONS[trigger])
            .replace("{query}", query)
            .replace("{content}", _format_content(content))
            .replace("{panelResults}", format_panel_results(panel_results))
        )

        start = time.monotonic()
        tokens_used = 0
        try:
            text, usage = await self._caller.call(
                system=ESCALATION_SYSTEM,
                messages=[{"role": "user", "content": prompt}],
                agent_name="escalation",
                model=self._model,
                max_tokens=3000,
            )
            tokens_used = usage["input_tokens"] + usage["output_tokens"]
            data = parse_json_object(text)
        except Exception as e:
            print(f"WARNING: escalation ({self._model}) failed: {e}", file=sys.stderr)
            return EscalationResult(
                trigger=trigger,
                model=self._model,
                narrative=f"Escalation failed: {e}",
                trust_decisions={},
                final_verdict=FinalVerdict.FAIL,
                scores={},
                overall_confidence=0.0,
                recommendations=[],
                latency_ms=int((time.monotonic() - start) * 1000),
                tokens_used=tokens_used,
            )

        try:
            verdict = FinalVerdict(str(data.get("finalVerdict", "")).lower())
        except ValueError:
            verdict = FinalVerdict.FAIL
        confidence = coerce_unit(data.get("overallConfidence"))
        recommendations = data.get("recommendations")

        return EscalationResult(
            trigger=trigger,
            model=self._model,
            narrative=str(data.get("synthesis") or ""),
            trust_decisions=_flatten_trust(data.get("trustDecisions")),
            final_verdict=verdict,
            scores=coerce_scores(data.get("resolvedScores")),
            overall_confidence=0.0 if confidence is None else confidence,
            recommendations=[str(r) for r in recommendations if isinstance(r, str)]
            if isinstance(recommendations, list)
            else [],
            latency_ms=int((time.monotonic() - start) * 1000),
            tokens_used=tokens_used,
        )
