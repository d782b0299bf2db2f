"""Plan evaluation orchestrator — panel, aggregation and escalation over retries.

Attempts run strictly one after another. The final result reflects the
last attempt, whether it passed or not.
"""

from __future__ import annotations

from typing import Any

from deep_research_judge.agents.escalation import EscalationHandler
from deep_research_judge.agents.panel import PanelEvaluator
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import PlanEvaluationResult
from deep_research_judge.graph.builder import RegenerateFn, build_plan_graph, max_attempts_for
from deep_research_judge.graph.state import PlanEvaluationState
from deep_research_judge.scoring.aggregator import collect_explanations


def skipped_plan_result(reason: str) -> PlanEvaluationResult:
    """Fail-open result: the plan proceeds unjudged."""
    return PlanEvaluationResult(
        passed=True,
        scores={},
        confidence=0.0,
        explanations={},
        attempts=[],
        total_iterations=0,
        escalated_to_large_model=False,
        evaluation_skipped=True,
        skip_reason=reason,
    )


class PlanEvaluationOrchestrator:
    def __init__(
        self,
        panel: PanelEvaluator,
        escalation_handler: EscalationHandler,
        config: EvaluationConfig,
    ) -> None:
        self._panel = panel
        self._escalation = escalation_handler
        self._config = config

    async def evaluate_plan(
        self,
        query: str,
        plan: Any,
        *,
        regenerate: RegenerateFn | None = None,
    ) -> PlanEvaluationResult:
        """Evaluate a plan, retrying up to the configured attempt limit.

        When `regenerate` is given it is awaited between failed attempts with
        the current plan and the iteration decision, and its return value is
        evaluated next. Without it the same plan object is re-evaluated.
        """
        if not self._config.enabled or not self._config.plan.enabled:
            return skipped_plan_result("Plan evaluation disabled")

        graph = build_plan_graph(
            panel=self._panel,
            escalation_handler=self._escalation,
            config=self._config,
            regenerate=regenerate,
        )
        initial = PlanEvaluationState(
            query=query,
            plan=plan,
            attempts=[],
            attempt_number=0,
            passed=False,
            last_decision=None,
            escalated=False,
        )
        # Two graph steps per attempt, plus headroom
        recursion_limit = 2 * max_attempts_for(self._config) + 5
        final = await graph.ainvoke(initial, config={"recursion_limit": recursion_limit})

        attempts = final["attempts"]
        last = attempts[-1]
        return PlanEvaluationResult(
            passed=last["passed"],
            scores=last["aggregated_scores"],
            confidence=last["aggregated_confidence"],
            explanations=collect_explanations(last["evaluator_results"]),
            attempts=attempts,
            total_iterations=len(attempts),
            escalated_to_large_model=final["escalated"],
            evaluation_skipped=False,
        )
