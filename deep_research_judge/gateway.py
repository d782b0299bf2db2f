"""Evaluation gateway — the research pipeline's single entry point for judging.

Every evaluation runs behind a fail-open contract: on any exception or
timeout the caller gets its fallback back, marked as skipped, so a judging
outage never blocks the research pipeline. The gateway is also the only
component that writes evaluation records.
"""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

from deep_research_judge.agents.answer_evaluator import AnswerEvaluator
from deep_research_judge.agents.base import JudgeCaller
from deep_research_judge.agents.claim_extractor import ClaimExtractor
from deep_research_judge.agents.confidence_scorer import ConfidenceScorer
from deep_research_judge.agents.entailment import EntailmentChecker, to_evidence_sources
from deep_research_judge.agents.escalation import EscalationHandler
from deep_research_judge.agents.panel import PanelEvaluator
from deep_research_judge.agents.plan_orchestrator import (
    PlanEvaluationOrchestrator,
    skipped_plan_result,
)
from deep_research_judge.agents.retrieval_evaluator import (
    RetrievalEvaluator,
    skipped_retrieval_result,
)
from deep_research_judge.config import EvaluationConfig, Settings
from deep_research_judge.contracts import (
    AnswerEvaluationResult,
    AnswerPhaseRecord,
    ConfidenceResult,
    EvaluationRecord,
    PlanEvaluationResult,
    PlanPhaseRecord,
    RetrievalEvaluationResult,
    RetrievalPhaseRecord,
    RetrievedContent,
)
from deep_research_judge.event_log.writer import EventLog
from deep_research_judge.graph.builder import RegenerateFn
from deep_research_judge.scoring.aggregator import calculate_overall_score
from deep_research_judge.scoring.confidence import low_confidence_result
from deep_research_judge.scoring.embedding import get_embedding_provider
from deep_research_judge.store.records import RecordStore

T = TypeVar("T", bound=dict)

FALLBACK_REASON = "Evaluation skipped due to error"


class EvaluationGateway:
    def __init__(
        self,
        config: EvaluationConfig,
        *,
        plan_orchestrator: PlanEvaluationOrchestrator | None = None,
        retrieval_evaluator: RetrievalEvaluator | None = None,
        answer_evaluator: AnswerEvaluator | None = None,
        confidence_scorer: ConfidenceScorer | None = None,
        store: RecordStore | None = None,
        log_dir: str | Path | None = None,
    ) -> None:
        self._config = config
        self._plan = plan_orchestrator
        self._retrieval = retrieval_evaluator
        self._answer = answer_evaluator
        self._confidence = confidence_scorer
        self._store = store
        self._log_dir = log_dir

    @classmethod
    def from_settings(cls, settings: Settings) -> EvaluationGateway:
        """Wire every component from environment settings."""
        config = settings.evaluation_config()
        caller = JudgeCaller(
            api_key=settings.anthropic_api_key,
            model=settings.panel_model,
            max_concurrent=settings.max_concurrent_requests,
            fallback_model=settings.light_model,
        )
        panel = PanelEvaluator(caller, config)
        embedder = get_embedding_provider(settings)
        scorer = None
        if embedder is not None:
            scorer = ConfidenceScorer(
                ClaimExtractor(caller, config),
                EntailmentChecker(caller, embedder, config),
                config,
                log_dir=settings.run_log_dir,
            )
        else:
            print(
                "WARNING: no embedding provider available, confidence scoring disabled",
                file=sys.stderr,
            )
        return cls(
            config,
            plan_orchestrator=PlanEvaluationOrchestrator(
                panel, EscalationHandler(caller, config), config
            ),
            retrieval_evaluator=RetrievalEvaluator(panel, config),
            answer_evaluator=AnswerEvaluator(panel, config),
            confidence_scorer=scorer,
            store=RecordStore(settings.records_dir),
            log_dir=settings.run_log_dir,
        )

    # --- Fail-open core ---

    def _log_error(self, log_id: str | None, context: str, reason: str, elapsed: float) -> None:
        if not (log_id and self._log_dir):
            return
        EventLog(self._log_dir, log_id).record(
            "evaluation_gateway", "error", elapsed_s=elapsed, context=context, reason=reason
        )

    async def evaluate_with_fallback(
        self,
        fn: Callable[[], Awaitable[T]],
        fallback: T,
        context: str,
        *,
        log_id: str | None = None,
    ) -> T:
        """Run fn under the context's timeout; return the fallback marked skipped on failure.

        A timed-out evaluation is cancelled.
        """
        if not self._config.enabled:
            return fallback

        timeout = self._config.timeout_for(context)
        start = time.monotonic()
        try:
            return await asyncio.wait_for(fn(), timeout=timeout)
        except asyncio.TimeoutError:
            reason = f"Evaluation timeout ({int(timeout * 1000)}ms) for {context}"
        except Exception as e:
            reason = str(e) or type(e).__name__

        print(f"WARNING: {context} evaluation skipped: {reason}", file=sys.stderr)
        self._log_error(log_id, context, reason, time.monotonic() - start)
        return {**fallback, "evaluation_skipped": True, "skip_reason": reason}

    # --- Phase wrappers ---

    async def evaluate_plan(
        self,
        query: str,
        plan: Any,
        *,
        regenerate: RegenerateFn | None = None,
        log_id: str | None = None,
    ) -> PlanEvaluationResult:
        fallback = skipped_plan_result(FALLBACK_REASON)
        if self._plan is None or not self._config.plan.enabled:
            return fallback
        return await self.evaluate_with_fallback(
            lambda: self._plan.evaluate_plan(query, plan, regenerate=regenerate),
            fallback,
            "plan evaluation",
            log_id=log_id,
        )

    async def evaluate_retrieval(
        self,
        query: str,
        retrieved: list[RetrievedContent],
        *,
        search_queries: list[str] | None = None,
        log_id: str | None = None,
    ) -> RetrievalEvaluationResult:
        fallback = skipped_retrieval_result(FALLBACK_REASON, self._config.retrieval.weights)
        if self._retrieval is None or not self._config.retrieval.enabled:
            return fallback
        return await self.evaluate_with_fallback(
            lambda: self._retrieval.evaluate(query, retrieved, search_queries=search_queries),
            fallback,
            "retrieval evaluation",
            log_id=log_id,
        )

    async def evaluate_answer(
        self,
        query: str,
        answer: str,
        sources: list[RetrievedContent],
        *,
        log_id: str | None = None,
    ) -> AnswerEvaluationResult:
        fallback = AnswerEvaluationResult(
            passed=True,
            scores={d: 0.0 for d in self._config.answer.weights},
            confidence=0.0,
            explanations={},
            should_regenerate=False,
            critique="",
            improvement_suggestions=[],
            failing_dimensions=[],
            evaluator_results=[],
            evaluation_skipped=True,
            skip_reason=FALLBACK_REASON,
        )
        if self._answer is None or not self._config.answer.enabled:
            return fallback
        return await self.evaluate_with_fallback(
            lambda: self._answer.evaluate(query, answer, sources),
            fallback,
            "answer evaluation",
            log_id=log_id,
        )

    async def score_confidence(
        self,
        answer: str,
        sources: list[RetrievedContent],
        *,
        log_id: str | None = None,
        weights: dict[str, float] | None = None,
    ) -> ConfidenceResult:
        fallback = low_confidence_result(FALLBACK_REASON, self._config.confidence)
        if self._confidence is None:
            return fallback
        evidence = to_evidence_sources(sources)
        return await self.evaluate_with_fallback(
            lambda: self._confidence.score_confidence(
                answer, evidence, log_id=log_id, weights=weights
            ),
            fallback,
            "answer confidence",
            log_id=log_id,
        )

    # --- Persistence ---

    def record_session(
        self,
        query: str,
        *,
        log_id: str,
        query_id: str = "",
        plan: PlanEvaluationResult | None = None,
        retrieval: RetrievalEvaluationResult | None = None,
        answer: AnswerEvaluationResult | None = None,
        regenerated: bool = False,
    ) -> EvaluationRecord:
        """Build the session's evaluation record and save it (when a store is attached)."""
        phase_scores: list[float] = []
        outcomes: list[bool] = []
        skip_reasons: list[str] = []

        plan_record = None
        if plan is not None:
            plan_record = PlanPhaseRecord(
                attempts=plan["attempts"],
                final_scores=plan["scores"],
                explanations=plan["explanations"],
                passed=plan["passed"],
                total_iterations=plan["total_iterations"],
                escalated_to_large_model=plan["escalated_to_large_model"],
            )
            outcomes.append(plan["passed"])
            if plan["evaluation_skipped"]:
                skip_reasons.append(f"plan: {plan.get('skip_reason', '')}")
            else:
                phase_scores.append(
                    calculate_overall_score(plan["scores"], self._config.plan.weights)
                )

        retrieval_record = None
        if retrieval is not None:
            retrieval_record = RetrievalPhaseRecord(
                scores=retrieval["scores"],
                explanations=retrieval["explanations"],
                passed=retrieval["passed"],
                flagged_severe=retrieval["flagged_severe"],
                source_details=retrieval["source_details"],
            )
            outcomes.append(retrieval["passed"])
            if retrieval["evaluation_skipped"]:
                skip_reasons.append(f"retrieval: {retrieval.get('skip_reason', '')}")
            else:
                phase_scores.append(
                    calculate_overall_score(retrieval["scores"], self._config.retrieval.weights)
                )

        answer_record = None
        if answer is not None:
            answer_record = AnswerPhaseRecord(
                final_scores=answer["scores"],
                explanations=answer["explanations"],
                passed=answer["passed"],
                regenerated=regenerated,
            )
            outcomes.append(answer["passed"])
            if answer["evaluation_skipped"]:
                skip_reasons.append(f"answer: {answer.get('skip_reason', '')}")
            else:
                phase_scores.append(
                    calculate_overall_score(answer["scores"], self._config.answer.weights)
                )

        record = EvaluationRecord(
            log_id=log_id,
            query_id=query_id or log_id,
            user_query=query,
            plan_evaluation=plan_record,
            retrieval_evaluation=retrieval_record,
            answer_evaluation=answer_record,
            overall_score=round(sum(phase_scores) / len(phase_scores), 4)
            if phase_scores
            else None,
            passed=all(outcomes),
            evaluation_skipped=bool(skip_reasons),
        )
        if skip_reasons:
            record["skip_reason"] = "; ".join(skip_reasons)

        if self._store is None:
            return record
        return self._store.save(record)

    def get_record(self, record_id: str) -> EvaluationRecord | None:
        return self._store.find(record_id) if self._store else None

    def get_records(
        self, page: int = 1, limit: int = 10, passed: bool | None = None
    ) -> dict[str, Any]:
        if self._store is None:
            return {"records": [], "total": 0, "page": page, "limit": limit, "totalPages": 0}
        return self._store.find_page(page=page, limit=limit, passed=passed)

    def get_stats(self) -> dict[str, Any]:
        if self._store is None:
            return RecordStore.summarize([])
        return self._store.stats()
