"""Answer evaluator — judges the final answer against the query and its sources."""

from __future__ import annotations

import sys

from deep_research_judge.agents.panel import PanelEvaluator
from deep_research_judge.agents.retrieval_evaluator import format_sources
from deep_research_judge.agents.roles import ANSWER_ROLES
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import (
    AnswerEvaluationResult,
    EvaluatorResult,
    PanelContext,
    RetrievedContent,
)
from deep_research_judge.scoring.aggregator import (
    aggregate_scores,
    calculate_overall_score,
    check_dimension_thresholds,
    collect_explanations,
)

SUGGESTION_FLOOR = 0.6


def build_critique(results: list[EvaluatorResult]) -> str:
    lines = []
    for r in results:
        if r["critique"]:
            role = getattr(r["role"], "value", r["role"])
            lines.append(f"[{role}]: {r['critique']}")
    return "\n".join(lines)


def build_suggestions(results: list[EvaluatorResult], scores: dict[str, float]) -> list[str]:
    """Judge suggestions first, then one per weak dimension; de-duplicated in order."""
    suggestions: list[str] = []
    for r in results:
        suggestions.extend(r.get("suggestions", []))
    for dimension, value in scores.items():
        if value < SUGGESTION_FLOOR:
            suggestions.append(f"Improve {dimension} (currently {value * 100:.0f}%)")
    return list(dict.fromkeys(suggestions))


class AnswerEvaluator:
    def __init__(self, panel: PanelEvaluator, config: EvaluationConfig) -> None:
        self._panel = panel
        self._config = config.answer

    def _zero_scores(self) -> dict[str, float]:
        return {d: 0.0 for d in self._config.weights}

    async def evaluate(
        self, query: str, answer: str, sources: list[RetrievedContent]
    ) -> AnswerEvaluationResult:
        if not answer or not answer.strip():
            return AnswerEvaluationResult(
                passed=False,
                scores=self._zero_scores(),
                confidence=0.0,
                explanations={},
                should_regenerate=True,
                critique="No answer was generated",
                improvement_suggestions=[
                    "Generate a comprehensive answer based on retrieved sources"
                ],
                failing_dimensions=[],
                evaluator_results=[],
                evaluation_skipped=True,
                skip_reason="No answer generated",
            )

        try:
            return await self._evaluate(query, answer, sources)
        except Exception as e:
            print(f"WARNING: answer evaluation failed, passing through: {e}", file=sys.stderr)
            return AnswerEvaluationResult(
                passed=True,
                scores=self._zero_scores(),
                confidence=0.0,
                explanations={},
                should_regenerate=False,
                critique="",
                improvement_suggestions=[],
                failing_dimensions=[],
                evaluator_results=[],
                evaluation_skipped=True,
                skip_reason=str(e),
            )

    async def _evaluate(
        self, query: str, answer: str, sources: list[RetrievedContent]
    ) -> AnswerEvaluationResult:
        context = PanelContext(query=query, answer=answer, sources=format_sources(sources))
        results = await self._panel.evaluate_with_panel(ANSWER_ROLES, context)
        aggregated = aggregate_scores(results)
        scores = aggregated["scores"]

        overall = calculate_overall_score(scores, self._config.weights)
        thresholds_passed, failing = check_dimension_thresholds(
            scores, self._config.dimension_thresholds
        )
        passed = overall >= self._config.major_failure_threshold and thresholds_passed

        return AnswerEvaluationResult(
            passed=passed,
            scores=scores,
            confidence=aggregated["confidence"],
            explanations=collect_explanations(results),
            should_regenerate=not passed,
            critique=build_critique(results),
            improvement_suggestions=build_suggestions(results, scores),
            failing_dimensions=failing,
            evaluator_results=results,
            evaluation_skipped=False,
        )
