"""Retrieval evaluator — judges whether fetched sources can answer the query.

Panel scores are combined with the heuristic page classifier: the batch
average actionable score joins the panel as `actionableInformation`.
No retry loop here; a single severe-failure threshold decides.
"""

from __future__ import annotations

import sys

from deep_research_judge.agents.panel import PanelEvaluator
from deep_research_judge.agents.roles import RETRIEVAL_ROLES
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import (
    PanelContext,
    RetrievalEvaluationResult,
    RetrievedContent,
    SourceDetail,
)
from deep_research_judge.scoring.aggregator import (
    aggregate_scores,
    calculate_overall_score,
    collect_explanations,
)
from deep_research_judge.scoring.classifier import aggregate_stats, classify_batch

PREVIEW_CHARS = 500


def format_sources(items: list[RetrievedContent]) -> str:
    """Render sources for a judge prompt, content truncated to a preview."""
    if not items:
        return "(no sources retrieved)"
    blocks = []
    for i, item in enumerate(items, 1):
        content = item.get("content", "")
        preview = content[:PREVIEW_CHARS] + ("..." if len(content) > PREVIEW_CHARS else "")
        blocks.append(
            f"### Source {i}\n"
            f"- URL: {item['url']}\n"
            f"- Title: {item.get('title') or '(untitled)'}\n"
            f"- Content Preview: {preview}"
        )
    return "\n\n".join(blocks)


def skipped_retrieval_result(reason: str, weights: dict[str, float]) -> RetrievalEvaluationResult:
    """Fail-open result: retrieval proceeds unjudged."""
    return RetrievalEvaluationResult(
        passed=True,
        scores={d: 0.0 for d in weights},
        confidence=0.0,
        explanations={},
        flagged_severe=False,
        needs_extraction=False,
        source_details=[],
        evaluator_results=[],
        evaluation_skipped=True,
        skip_reason=reason,
    )


class RetrievalEvaluator:
    def __init__(self, panel: PanelEvaluator, config: EvaluationConfig) -> None:
        self._panel = panel
        self._config = config.retrieval

    async def evaluate(
        self,
        query: str,
        retrieved: list[RetrievedContent],
        *,
        search_queries: list[str] | None = None,
    ) -> RetrievalEvaluationResult:
        try:
            return await self._evaluate(query, retrieved, search_queries)
        except Exception as e:
            print(f"WARNING: retrieval evaluation failed, passing through: {e}", file=sys.stderr)
            return skipped_retrieval_result(str(e), self._config.weights)

    async def _evaluate(
        self,
        query: str,
        retrieved: list[RetrievedContent],
        search_queries: list[str] | None,
    ) -> RetrievalEvaluationResult:
        context = PanelContext(
            query=query,
            sources=format_sources(retrieved),
            search_queries=search_queries or [],
        )
        results = await self._panel.evaluate_with_panel(RETRIEVAL_ROLES, context)
        aggregated = aggregate_scores(results)
        scores = dict(aggregated["scores"])
        explanations = collect_explanations(results)

        classifications = classify_batch(retrieved)
        stats = aggregate_stats(classifications)
        if classifications:
            scores["actionableInformation"] = stats["average_actionable_score"]
            explanations["actionableInformation"] = (
                f"{stats['specific_content_count']} specific, "
                f"{stats['aggregator_count']} aggregator, "
                f"{stats['navigation_count']} navigation page(s)"
            )

        overall = calculate_overall_score(scores, self._config.weights)
        passed = overall >= self._config.severe_threshold

        result = RetrievalEvaluationResult(
            passed=passed,
            scores=scores,
            confidence=aggregated["confidence"],
            explanations=explanations,
            flagged_severe=not passed,
            needs_extraction=stats["needs_extraction"],
            source_details=[
                SourceDetail(
                    url=c["url"],
                    result_type=c["result_type"],
                    actionable_score=c["actionable_score"],
                    classification_confidence=c["confidence"],
                    reasons=c["reasons"],
                )
                for c in classifications
            ],
            classification_stats=stats,
            evaluator_results=results,
            evaluation_skipped=False,
        )
        if stats["needs_extraction"]:
            result["extraction_reason"] = (
                f"{stats['aggregator_count']} of {len(classifications)} sources are "
                f"aggregator pages (average actionable score "
                f"{stats['average_actionable_score']:.2f}); extract specific pages"
            )
        return result
