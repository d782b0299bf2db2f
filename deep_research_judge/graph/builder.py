"""StateGraph construction for the plan-evaluation retry loop.

    evaluate_attempt --(passed or attempts exhausted)--> END
          ^                      |
          |                 (otherwise)
          +---- regenerate <-----+
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from deep_research_judge.agents.escalation import EscalationHandler
from deep_research_judge.agents.panel import PanelEvaluator
from deep_research_judge.agents.roles import PLAN_ROLES
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import (
    FinalVerdict,
    IterationDecision,
    PanelContext,
    PlanAttempt,
)
from deep_research_judge.graph.state import PlanEvaluationState
from deep_research_judge.scoring.aggregator import (
    aggregate_scores,
    calculate_overall_score,
    check_dimension_thresholds,
    check_escalation_triggers,
    decide_iteration,
)

# (plan, decision) -> next plan
RegenerateFn = Callable[[Any, IterationDecision], Awaitable[Any]]


def extract_search_queries(plan: Any) -> list[str]:
    """Pull search queries out of a plan dict or object, if it carries any."""
    if isinstance(plan, dict):
        queries = plan.get("search_queries") or plan.get("searchQueries") or []
    else:
        queries = getattr(plan, "search_queries", None) or []
    if not isinstance(queries, (list, tuple)):
        return []
    return [str(q) for q in queries]


def _failed_attempt(attempt_number: int, timestamp: str, plan: Any) -> PlanAttempt:
    return PlanAttempt(
        attempt_number=attempt_number,
        timestamp=timestamp,
        plan=plan,
        evaluator_results=[],
        aggregated_scores={},
        aggregated_confidence=0.0,
        escalation_trigger=None,
        passed=False,
    )


def max_attempts_for(config: EvaluationConfig) -> int:
    if not config.plan.iteration_enabled:
        return 1
    return max(1, config.plan.max_attempts)


def build_plan_graph(
    *,
    panel: PanelEvaluator,
    escalation_handler: EscalationHandler,
    config: EvaluationConfig,
    regenerate: RegenerateFn | None = None,
) -> CompiledStateGraph:
    """Build and compile the plan-evaluation graph.

    Returns a compiled StateGraph ready to invoke.
    """
    plan_config = config.plan
    max_attempts = max_attempts_for(config)

    async def evaluate_attempt_node(state: PlanEvaluationState) -> dict:
        attempt_number = state["attempt_number"] + 1
        timestamp = datetime.now(timezone.utc).isoformat()
        escalated = False

        try:
            context = PanelContext(
                query=state["query"],
                plan=state["plan"],
                search_queries=extract_search_queries(state["plan"]),
            )
            results = await panel.evaluate_with_panel(PLAN_ROLES, context)
            aggregated = aggregate_scores(results)
            scores = dict(aggregated["scores"])

            trigger = check_escalation_triggers(
                aggregated, results, plan_config.pass_threshold, plan_config.weights
            )
            escalation = None
            if trigger is not None:
                escalation = await escalation_handler.escalate(
                    trigger, state["query"], state["plan"], results
                )
                escalated = True
                # Escalation overrides matching dimensions
                scores.update(escalation["scores"])
                verdict_passed = escalation["final_verdict"] == FinalVerdict.PASS
            else:
                overall = calculate_overall_score(scores, plan_config.weights)
                verdict_passed = overall >= plan_config.pass_threshold

            thresholds_passed, failing = check_dimension_thresholds(
                scores, plan_config.dimension_thresholds
            )
            passed = verdict_passed and thresholds_passed
        except Exception as e:
            print(
                f"WARNING: plan evaluation attempt {attempt_number} failed: {e}",
                file=sys.stderr,
            )
            return {
                "attempts": [_failed_attempt(attempt_number, timestamp, state["plan"])],
                "attempt_number": attempt_number,
                "passed": False,
                "last_decision": None,
                "escalated": escalated,
            }

        attempt = PlanAttempt(
            attempt_number=attempt_number,
            timestamp=timestamp,
            plan=state["plan"],
            evaluator_results=results,
            aggregated_scores=scores,
            aggregated_confidence=aggregated["confidence"],
            escalation_trigger=trigger,
            passed=passed,
        )
        if escalation is not None:
            attempt["escalation_result"] = escalation

        decision = None
        if not passed and attempt_number < max_attempts:
            decision = decide_iteration(results, scores, plan_config.pass_threshold)
            attempt["iteration_decision"] = decision
            if failing:
                print(
                    f"WARNING: plan attempt {attempt_number} below floors: {', '.join(failing)}",
                    file=sys.stderr,
                )

        return {
            "attempts": [attempt],
            "attempt_number": attempt_number,
            "passed": passed,
            "last_decision": decision,
            "escalated": escalated,
        }

    async def regenerate_node(state: PlanEvaluationState) -> dict:
        plan = state["plan"]
        decision = state["last_decision"]
        if regenerate is None or decision is None:
            # Without a callback the same plan is evaluated again
            return {"plan": plan}
        try:
            plan = await regenerate(plan, decision)
        except Exception as e:
            print(f"WARNING: plan regeneration failed, re-evaluating: {e}", file=sys.stderr)
        return {"plan": plan}

    def should_retry(state: PlanEvaluationState) -> str:
        if state["passed"] or state["attempt_number"] >= max_attempts:
            return "done"
        return "regenerate"

    # --- Build graph ---

    graph = StateGraph(PlanEvaluationState)

    graph.add_node("evaluate_attempt", evaluate_attempt_node)
    graph.add_node("regenerate", regenerate_node)

    graph.set_entry_point("evaluate_attempt")

    # Conditional: evaluate_attempt -> END (passed / exhausted) or -> regenerate
    graph.add_conditional_edges(
        "evaluate_attempt",
        should_retry,
        {"done": END, "regenerate": "regenerate"},
    )
    graph.add_edge("regenerate", "evaluate_attempt")

    return graph.compile()
