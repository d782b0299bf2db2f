"""Tests for the plan-evaluation graph — retries, escalation, regeneration, failure."""

from __future__ import annotations

import dataclasses
import json
from unittest.mock import AsyncMock

import pytest
from conftest import judge_reply, make_caller

from deep_research_judge.agents.escalation import EscalationHandler
from deep_research_judge.agents.panel import PanelEvaluator
from deep_research_judge.agents.plan_orchestrator import (
    PlanEvaluationOrchestrator,
    skipped_plan_result,
)
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import EscalationTrigger, IterationMode
from deep_research_judge.graph.builder import extract_search_queries, max_attempts_for

QUERY = "Jazz concerts in New York this week"
PLAN = {"steps": ["search listings"], "search_queries": ["jazz nyc this week"]}


def _orchestrator(caller, config: EvaluationConfig | None = None) -> PlanEvaluationOrchestrator:
    config = config or EvaluationConfig()
    return PlanEvaluationOrchestrator(
        PanelEvaluator(caller, config), EscalationHandler(caller, config), config
    )


class TestHelpers:
    def test_extract_search_queries_from_dict(self):
        assert extract_search_queries(PLAN) == ["jazz nyc this week"]
        assert extract_search_queries({"searchQueries": ["a"]}) == ["a"]

    def test_extract_search_queries_from_object(self):
        class Plan:
            search_queries = ("x", "y")

        assert extract_search_queries(Plan()) == ["x", "y"]
        assert extract_search_queries("free text plan") == []

    def test_max_attempts(self):
        config = EvaluationConfig()
        assert max_attempts_for(config) == 3
        no_iter = dataclasses.replace(
            config, plan=dataclasses.replace(config.plan, iteration_enabled=False)
        )
        assert max_attempts_for(no_iter) == 1

    def test_skipped_result_fails_open(self):
        result = skipped_plan_result("down")
        assert result["passed"] is True
        assert result["evaluation_skipped"] is True
        assert result["skip_reason"] == "down"


class TestEvaluatePlan:
    @pytest.mark.asyncio
    async def test_passes_first_attempt(self):
        caller = make_caller(
            {
                "intentAnalyst": judge_reply({"intentAlignment": 0.9}, confidence=0.9),
                "coverageChecker": judge_reply({"queryCoverage": 0.85}, confidence=0.9),
            }
        )
        result = await _orchestrator(caller).evaluate_plan(QUERY, PLAN)

        assert result["passed"] is True
        assert result["total_iterations"] == 1
        assert result["escalated_to_large_model"] is False
        assert result["evaluation_skipped"] is False
        assert result["scores"] == {"intentAlignment": 0.9, "queryCoverage": 0.85}
        assert result["confidence"] == pytest.approx(0.9)
        assert result["attempts"][0]["escalation_trigger"] is None
        assert "iteration_decision" not in result["attempts"][0]

    @pytest.mark.asyncio
    async def test_search_queries_reach_prompt(self):
        caller = make_caller(default=judge_reply({"intentAlignment": 0.9}))
        await _orchestrator(caller).evaluate_plan(QUERY, PLAN)
        prompts = [c.kwargs["messages"][0]["content"] for c in caller.call.call_args_list]
        assert any("- jazz nyc this week" in p for p in prompts)

    @pytest.mark.asyncio
    async def test_fails_after_max_attempts(self):
        caller = make_caller(default=judge_reply({"intentAlignment": 0.4}, confidence=0.9))
        result = await _orchestrator(caller).evaluate_plan(QUERY, PLAN)

        assert result["passed"] is False
        assert result["total_iterations"] == 3
        assert [a["attempt_number"] for a in result["attempts"]] == [1, 2, 3]
        # Decisions only for attempts that will be retried
        assert "iteration_decision" in result["attempts"][0]
        assert "iteration_decision" in result["attempts"][1]
        assert "iteration_decision" not in result["attempts"][2]
        assert result["attempts"][0]["iteration_decision"]["mode"] == IterationMode.TARGETED_FIX

    @pytest.mark.asyncio
    async def test_dimension_floor_fails_otherwise_passing_plan(self):
        # Overall (0.5*0.95 + 0.35*0.95 + 0.15*0.3) / 1.0 = 0.8525, but scope < 0.5
        caller = make_caller(
            {
                "intentAnalyst": judge_reply({"intentAlignment": 0.95}),
                "coverageChecker": judge_reply(
                    {"queryCoverage": 0.95, "scopeAppropriateness": 0.3}
                ),
            }
        )
        config = EvaluationConfig()
        config = dataclasses.replace(
            config, plan=dataclasses.replace(config.plan, iteration_enabled=False)
        )
        result = await _orchestrator(caller, config).evaluate_plan(QUERY, PLAN)
        assert result["passed"] is False
        assert result["total_iterations"] == 1

    @pytest.mark.asyncio
    async def test_regenerate_callback_feeds_next_attempt(self):
        def intent_reply(messages):
            prompt = messages[0]["content"]
            score = 0.95 if "revised plan" in prompt else 0.3
            return judge_reply({"intentAlignment": score})

        caller = make_caller({"intentAnalyst": intent_reply, "coverageChecker": intent_reply})
        regenerate = AsyncMock(return_value="revised plan")

        result = await _orchestrator(caller).evaluate_plan(QUERY, "first plan", regenerate=regenerate)

        assert result["passed"] is True
        assert result["total_iterations"] == 2
        regenerate.assert_awaited_once()
        plan_arg, decision_arg = regenerate.await_args.args
        assert plan_arg == "first plan"
        assert decision_arg["specific_issues"]
        assert [a["plan"] for a in result["attempts"]] == ["first plan", "revised plan"]
        assert result["attempts"][0]["passed"] is False

    @pytest.mark.asyncio
    async def test_failing_regenerate_reuses_plan(self):
        caller = make_caller(default=judge_reply({"intentAlignment": 0.3}))
        regenerate = AsyncMock(side_effect=RuntimeError("planner down"))

        result = await _orchestrator(caller).evaluate_plan(QUERY, PLAN, regenerate=regenerate)

        assert result["total_iterations"] == 3
        assert regenerate.await_count == 2

    @pytest.mark.asyncio
    async def test_escalation_overrides_scores(self):
        escalation = json.dumps(
            {
                "trustDecisions": {},
                "resolvedScores": {"intentAlignment": 0.85},
                "finalVerdict": "pass",
                "overallConfidence": 0.8,
                "synthesis": "Plan is fine",
                "recommendations": [],
            }
        )
        caller = make_caller(
            {
                "intentAnalyst": judge_reply({"intentAlignment": 0.9}, confidence=0.4),
                "coverageChecker": judge_reply({"intentAlignment": 0.5}, confidence=0.5),
                "escalation": escalation,
            }
        )
        result = await _orchestrator(caller).evaluate_plan(QUERY, PLAN)

        attempt = result["attempts"][0]
        assert attempt["escalation_trigger"] == EscalationTrigger.LOW_CONFIDENCE
        assert attempt["escalation_result"]["scores"] == {"intentAlignment": 0.85}
        assert result["scores"]["intentAlignment"] == 0.85
        assert result["escalated_to_large_model"] is True
        assert result["passed"] is True

    @pytest.mark.asyncio
    async def test_attempt_exception_recorded_as_failed(self):
        caller = make_caller(default=judge_reply({"intentAlignment": 0.9}))
        panel = PanelEvaluator(caller, EvaluationConfig())
        panel.evaluate_with_panel = AsyncMock(side_effect=RuntimeError("panel crashed"))
        config = EvaluationConfig()
        orchestrator = PlanEvaluationOrchestrator(
            panel, EscalationHandler(caller, config), config
        )

        result = await orchestrator.evaluate_plan(QUERY, PLAN)

        assert result["passed"] is False
        assert result["total_iterations"] == 3
        assert all(a["evaluator_results"] == [] for a in result["attempts"])
        assert all(a["plan"] == PLAN for a in result["attempts"])
        assert result["scores"] == {}

    @pytest.mark.asyncio
    async def test_disabled_returns_skipped(self):
        config = EvaluationConfig()
        config = dataclasses.replace(config, plan=dataclasses.replace(config.plan, enabled=False))
        caller = make_caller()
        result = await _orchestrator(caller, config).evaluate_plan(QUERY, PLAN)
        assert result["evaluation_skipped"] is True
        assert result["passed"] is True
        caller.call.assert_not_called()
