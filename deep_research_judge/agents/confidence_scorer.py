"""Confidence scoring pipeline.

claim extraction -> entailment check (per claim) -> SU score -> aggregation.

Stages run in order, each consuming the previous stage's output. When a
log id is given, every stage writes start / progress / complete / error
events to the session's event log.
"""

from __future__ import annotations

import dataclasses
import time
from pathlib import Path

from deep_research_judge.agents.claim_extractor import ClaimExtractor
from deep_research_judge.agents.entailment import EntailmentChecker
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import ConfidenceResult, EntailmentResult, EvidenceSource
from deep_research_judge.event_log.writer import EventLog
from deep_research_judge.scoring.confidence import aggregate_confidence, low_confidence_result
from deep_research_judge.scoring.suscore import calculate_su_score

_WEIGHT_FIELDS = {
    "entailment": "entailment_weight",
    "su_score": "su_score_weight",
    "source_count": "source_count_weight",
}


class ConfidenceScoringError(RuntimeError):
    """Any failure inside the confidence pipeline, including claim extraction."""


class _StageLog:
    """Emits stage events when an event log is attached; no-op otherwise."""

    def __init__(self, log: EventLog | None) -> None:
        self._log = log
        self._started: dict[str, float] = {}

    def _emit(self, node: str, status: str, details: dict | None = None) -> None:
        if self._log is None:
            return
        elapsed = time.monotonic() - self._started.get(node, time.monotonic())
        self._log.record(node, status, elapsed_s=elapsed, **(details or {}))

    def start(self, node: str, **details) -> None:
        self._started[node] = time.monotonic()
        self._emit(node, "start", details)

    def progress(self, node: str, **details) -> None:
        self._emit(node, "progress", details)

    def complete(self, node: str, **details) -> None:
        self._emit(node, "complete", details)

    def error(self, node: str, **details) -> None:
        self._emit(node, "error", details)


class ConfidenceScorer:
    def __init__(
        self,
        claim_extractor: ClaimExtractor,
        entailment_checker: EntailmentChecker,
        config: EvaluationConfig,
        *,
        log_dir: str | Path | None = None,
    ) -> None:
        self._extractor = claim_extractor
        self._entailment = entailment_checker
        self._config = config.confidence
        self._log_dir = log_dir

    def _resolve_config(self, weights: dict[str, float] | None):
        if not weights:
            return self._config
        unknown = set(weights) - set(_WEIGHT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown confidence weight(s): {', '.join(sorted(unknown))}")
        return dataclasses.replace(
            self._config, **{_WEIGHT_FIELDS[k]: float(v) for k, v in weights.items()}
        )

    async def score_confidence(
        self,
        answer: str,
        sources: list[EvidenceSource],
        *,
        log_id: str | None = None,
        weights: dict[str, float] | None = None,
    ) -> ConfidenceResult:
        """Score how well the answer's claims are supported by the sources.

        weights may override any of "entailment", "su_score", "source_count".
        Raises ConfidenceScoringError on failure.
        """
        config = self._resolve_config(weights)
        log = EventLog(self._log_dir, log_id) if (log_id and self._log_dir) else None
        stages = _StageLog(log)
        node = "confidence_scoring"
        stages.start(node, sources=len(sources))

        try:
            stages.start("claim_extraction")
            claims = await self._extractor.extract_claims(answer)
            stages.complete("claim_extraction", claims=len(claims))

            if not claims:
                stages.complete(node, claims=0)
                return low_confidence_result("No claims could be extracted from the answer.", config)

            stages.start("entailment_check", claims=len(claims))
            entailments: list[EntailmentResult] = []
            for i, claim in enumerate(claims, 1):
                entailment = await self._entailment.check_entailment(claim, sources)
                entailments.append(entailment)
                verdict = getattr(entailment["verdict"], "value", entailment["verdict"])
                stages.progress("entailment_check", claim=i, of=len(claims), verdict=verdict)
            stages.complete("entailment_check", claims=len(entailments))

            stages.start("su_score")
            su_result = calculate_su_score(claims, entailments)
            stages.complete("su_score", overall=round(su_result["overall_score"], 4))

            stages.start("confidence_aggregation")
            result = aggregate_confidence(claims, entailments, su_result, len(sources), config)
            stages.complete(
                "confidence_aggregation",
                overall=round(result["overall_confidence"], 4),
                level=result["level"].value,
            )
        except Exception as e:
            stages.error(node, error=str(e))
            raise ConfidenceScoringError(f"Confidence scoring pipeline failed: {e}") from e

        stages.complete(node, claims=len(claims))
        return result
