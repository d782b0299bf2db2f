"""Confidence classification and claim-level confidence aggregation."""

from __future__ import annotations

from deep_research_judge.config import ConfidenceScoringConfig
from deep_research_judge.contracts import (
    Claim,
    ClaimConfidence,
    ConfidenceLevel,
    ConfidenceMethodology,
    ConfidenceResult,
    EntailmentResult,
    EntailmentVerdict,
    SUScoreResult,
)
from deep_research_judge.utils.scores import clamp_unit

NEUTRAL_SCORE = 0.5


def classify_confidence(score: float) -> ConfidenceLevel:
    """Classify a numeric score into confidence level."""
    if score >= 0.8:
        return ConfidenceLevel.HIGH
    if score >= 0.6:
        return ConfidenceLevel.MEDIUM
    if score >= 0.4:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.VERY_LOW


def normalize_entailment(entailment: EntailmentResult | None) -> float:
    """Map a verdict + judge score onto one support scale.

    entailed lands in [0.7, 1.0], neutral in [0.4, 0.6], contradicted in [0.1, 0.3].
    """
    if entailment is None:
        return NEUTRAL_SCORE
    score = clamp_unit(entailment["score"])
    if entailment["verdict"] == EntailmentVerdict.ENTAILED:
        return 0.7 + score * 0.3
    if entailment["verdict"] == EntailmentVerdict.CONTRADICTED:
        return 0.1 + (1 - score) * 0.2
    return 0.4 + score * 0.2


def source_count_score(total_sources: int, ideal: int = 5) -> float:
    return clamp_unit(total_sources / max(1, ideal))


def weakest_link_mean(confidences: list[float]) -> float:
    """Rank-weighted mean: the lowest confidence gets weight N, the highest weight 1."""
    if not confidences:
        return NEUTRAL_SCORE
    ordered = sorted(confidences)
    n = len(ordered)
    weights = [n - rank for rank in range(n)]
    return clamp_unit(sum(c * w for c, w in zip(ordered, weights)) / sum(weights))


def _methodology(config: ConfidenceScoringConfig) -> ConfidenceMethodology:
    return ConfidenceMethodology(
        entailment_weight=config.entailment_weight,
        su_score_weight=config.su_score_weight,
        source_count_weight=config.source_count_weight,
        description=(
            "Per-claim confidence combines source entailment, substantive-word "
            "uncertainty and source count. Overall confidence weights the least "
            "confident claims most heavily."
        ),
    )


def build_recommendations(
    overall: float, total_sources: int, claims: list[ClaimConfidence]
) -> list[str]:
    recs: list[str] = []
    if overall < 0.6:
        recs.append(
            "Overall confidence is below 60%. Consider gathering additional sources "
            "or verifying key claims."
        )
    if total_sources < 3:
        recs.append(
            f"Only {total_sources} source(s) used. Additional sources would strengthen confidence."
        )

    low = sum(1 for c in claims if c["confidence"] < 0.5)
    if low:
        recs.append(f"{low} claim(s) have low confidence (<50%). Review these claims for accuracy.")
    contradicted = sum(1 for c in claims if c["entailment_score"] < 0.3)
    if contradicted:
        recs.append(
            f"{contradicted} claim(s) may be contradicted by sources. "
            "Verify these claims carefully."
        )
    unsupported = sum(1 for c in claims if c["supporting_source_count"] == 0)
    if unsupported:
        recs.append(
            f"{unsupported} claim(s) lack supporting sources. Consider adding citations."
        )
    uncertain = sum(1 for c in claims if c["su_score"] < 0.5)
    if uncertain:
        recs.append(
            f"{uncertain} claim(s) have high substantive-word uncertainty. "
            "Key names, numbers or dates may be unverified."
        )

    if not recs and overall >= 0.8:
        recs.append(
            "High confidence score. The answer is well-supported by sources with low uncertainty."
        )
    return recs


def aggregate_confidence(
    claims: list[Claim],
    entailments: list[EntailmentResult],
    su_result: SUScoreResult,
    total_sources: int,
    config: ConfidenceScoringConfig | None = None,
) -> ConfidenceResult:
    config = config or ConfidenceScoringConfig()
    by_claim = {e["claim_id"]: e for e in entailments}
    su_by_claim = {s["claim_id"]: s["score"] for s in su_result["claim_scores"]}
    sources_signal = source_count_score(total_sources, config.ideal_source_count)

    claim_confidences: list[ClaimConfidence] = []
    for claim in claims:
        entailment = by_claim.get(claim["id"])
        entailment_score = normalize_entailment(entailment)
        su_score = clamp_unit(su_by_claim.get(claim["id"], NEUTRAL_SCORE))
        confidence = clamp_unit(
            entailment_score * config.entailment_weight
            + su_score * config.su_score_weight
            + sources_signal * config.source_count_weight
        )
        claim_confidences.append(
            ClaimConfidence(
                claim_id=claim["id"],
                claim_text=claim["text"],
                confidence=confidence,
                level=classify_confidence(confidence),
                entailment_score=entailment_score,
                su_score=su_score,
                supporting_source_count=len(entailment["supporting_sources"]) if entailment else 0,
            )
        )

    overall = weakest_link_mean([c["confidence"] for c in claim_confidences])
    return ConfidenceResult(
        overall_confidence=overall,
        level=classify_confidence(overall),
        claim_confidences=claim_confidences,
        su_score=clamp_unit(su_result["overall_score"]),
        methodology=_methodology(config),
        recommendations=build_recommendations(overall, total_sources, claim_confidences),
    )


def low_confidence_result(
    reason: str, config: ConfidenceScoringConfig | None = None
) -> ConfidenceResult:
    """Result for an answer that could not be assessed at all."""
    return ConfidenceResult(
        overall_confidence=0.1,
        level=ConfidenceLevel.VERY_LOW,
        claim_confidences=[],
        su_score=NEUTRAL_SCORE,
        methodology=_methodology(config or ConfidenceScoringConfig()),
        recommendations=[reason, "Unable to perform confidence assessment."],
    )
