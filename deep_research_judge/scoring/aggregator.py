"""Score aggregation, escalation triggers, dimension floors and iteration advice.

Pure functions over panel results; nothing here calls a model.
"""

from __future__ import annotations

import sys
from typing import Mapping

from deep_research_judge.config import PLAN_WEIGHTS
from deep_research_judge.contracts import (
    AggregatedResult,
    EscalationTrigger,
    EvaluatorResult,
    IterationDecision,
    IterationMode,
    SpecificIssue,
)
from deep_research_judge.utils.scores import clamp_unit

LOW_CONFIDENCE_THRESHOLD = 0.6
DISAGREEMENT_SPREAD = 0.3
BORDERLINE_MARGIN = 0.05
FULL_REGENERATION_FAILURES = 2


def aggregate_scores(results: list[EvaluatorResult]) -> AggregatedResult:
    """Union dimensions across results (last reporter wins), mean confidence."""
    scores: dict[str, float] = {}
    for result in results:
        for dimension, value in result["scores"].items():
            scores[dimension] = clamp_unit(value)
    if not results:
        return AggregatedResult(scores=scores, confidence=0.0)
    confidence = sum(clamp_unit(r["confidence"]) for r in results) / len(results)
    return AggregatedResult(scores=scores, confidence=clamp_unit(confidence))


def calculate_overall_score(
    scores: Mapping[str, float], weights: Mapping[str, float] | None = None
) -> float:
    """Weighted score over dimensions present in both maps.

    Without explicit weights, the plan weight table is used when any scored
    dimension appears in it; otherwise a plain mean. Returns 0.0 when
    nothing matches.
    """
    if not scores:
        return 0.0

    if weights is None:
        if any(d in PLAN_WEIGHTS for d in scores):
            weights = PLAN_WEIGHTS
        else:
            return clamp_unit(sum(clamp_unit(v) for v in scores.values()) / len(scores))

    total = 0.0
    matched_weight = 0.0
    for dimension, value in scores.items():
        weight = weights.get(dimension)
        if weight is None or weight <= 0:
            continue
        total += clamp_unit(value) * weight
        matched_weight += weight
    if matched_weight == 0:
        return 0.0
    return clamp_unit(total / matched_weight)


def check_escalation_triggers(
    aggregated: AggregatedResult,
    results: list[EvaluatorResult],
    pass_threshold: float = 0.7,
    weights: Mapping[str, float] | None = None,
) -> EscalationTrigger | None:
    """First matching trigger in precedence order: low confidence, disagreement, borderline."""
    if (
        all(r["confidence"] < LOW_CONFIDENCE_THRESHOLD for r in results)
        or aggregated["confidence"] < LOW_CONFIDENCE_THRESHOLD
    ):
        return EscalationTrigger.LOW_CONFIDENCE

    by_dimension: dict[str, list[float]] = {}
    for result in results:
        for dimension, value in result["scores"].items():
            by_dimension.setdefault(dimension, []).append(clamp_unit(value))
    for values in by_dimension.values():
        if len(values) >= 2 and max(values) - min(values) > DISAGREEMENT_SPREAD:
            return EscalationTrigger.DISAGREEMENT

    overall = calculate_overall_score(aggregated["scores"], weights)
    if abs(overall - pass_threshold) < BORDERLINE_MARGIN:
        return EscalationTrigger.BORDERLINE

    return None


def check_dimension_thresholds(
    scores: Mapping[str, float], thresholds: Mapping[str, float] | None = None
) -> tuple[bool, list[str]]:
    """Check per-dimension floors. Returns (passed, failing_dimensions).

    Only dimensions present in both maps are checked.
    """
    if not thresholds:
        return True, []
    failing = [
        f"{dimension} ({scores[dimension]:.2f} < {floor:.2f})"
        for dimension, floor in thresholds.items()
        if dimension in scores and scores[dimension] < floor
    ]
    return not failing, failing


def decide_iteration(
    results: list[EvaluatorResult],
    scores: Mapping[str, float],
    threshold: float,
) -> IterationDecision:
    """Advisory feedback for the planner after a failed attempt."""
    failing = [d for d, v in scores.items() if v < threshold]
    mode = (
        IterationMode.FULL_REGENERATION
        if len(failing) > FULL_REGENERATION_FAILURES
        else IterationMode.TARGETED_FIX
    )
    issues = [SpecificIssue(issue=f"{d} score too low", fix=f"Improve {d}") for d in failing]
    feedback = "\n".join(r["critique"] for r in results if r["critique"])
    return IterationDecision(mode=mode, specific_issues=issues, feedback_to_planner=feedback)


def collect_explanations(results: list[EvaluatorResult]) -> dict[str, str]:
    """Fan each role's explanation out across the dimensions it owns.

    A role that scored but gave no explanation leaves its dimensions out.
    """
    explanations: dict[str, str] = {}
    for result in results:
        text = result.get("explanation")
        if not text:
            if result["scores"]:
                role = getattr(result["role"], "value", result["role"])
                print(f"WARNING: judge {role} returned no explanation", file=sys.stderr)
            continue
        for dimension in result["dimensions"]:
            explanations[dimension] = text
    return explanations
