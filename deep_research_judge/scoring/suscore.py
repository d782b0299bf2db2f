"""Substantive-word Uncertainty (SU) score.

Per claim:  score = 1 - sum(importance * uncertainty) / sum(importance)
where a word's uncertainty is the claim's entailment base value scaled by
the word's type importance. Names and numbers weigh most: an unsupported
proper noun hurts more than an unsupported verb.
"""

from __future__ import annotations

from deep_research_judge.contracts import (
    Claim,
    ClaimSUScore,
    EntailmentResult,
    EntailmentVerdict,
    SUScoreResult,
    WordType,
    WordUncertainty,
)
from deep_research_judge.utils.scores import clamp_unit

WORD_WEIGHTS: dict[WordType, float] = {
    WordType.PROPER_NOUN: 1.0,
    WordType.NUMERAL: 0.95,
    WordType.NOUN: 0.8,
    WordType.VERB: 0.7,
}
DEFAULT_WORD_WEIGHT = 0.5
NEUTRAL_SCORE = 0.5

METHODOLOGY = (
    "SU score = 1 - (sum of importance x uncertainty) / (sum of importance) over the "
    "substantive words of each claim. Word uncertainty is derived from the claim's "
    "entailment verdict (entailed: 0.1-0.3, neutral: 0.5, contradicted: 0.8-1.0) and "
    "scaled by word type importance (proper noun 1.0, numeral 0.95, noun 0.8, verb 0.7). "
    "The overall score weights each claim by its total word importance."
)


def word_importance(word_type) -> float:
    try:
        return WORD_WEIGHTS[WordType(word_type)]
    except ValueError:
        return DEFAULT_WORD_WEIGHT


def base_uncertainty(entailment: EntailmentResult | None) -> float:
    if entailment is None:
        return 0.5
    score = clamp_unit(entailment["score"])
    if entailment["verdict"] == EntailmentVerdict.ENTAILED:
        return 0.1 + 0.2 * (1 - score)
    if entailment["verdict"] == EntailmentVerdict.CONTRADICTED:
        return 0.8 + 0.2 * (1 - score)
    return 0.5


def score_claim(claim: Claim, entailment: EntailmentResult | None) -> tuple[ClaimSUScore, float]:
    """Returns (claim score, total word importance used as the claim's weight)."""
    base = base_uncertainty(entailment)
    breakdown: list[WordUncertainty] = []
    weighted = 0.0
    total_importance = 0.0
    for word in claim["substantive_words"]:
        importance = word_importance(word["type"])
        uncertainty = clamp_unit(base * importance)
        contribution = importance * uncertainty
        breakdown.append(
            WordUncertainty(
                word=word["word"],
                type=word["type"],
                importance=importance,
                uncertainty=uncertainty,
                contribution=contribution,
            )
        )
        weighted += contribution
        total_importance += importance

    if total_importance == 0:
        score = NEUTRAL_SCORE
    else:
        score = clamp_unit(1 - weighted / total_importance)
    return (
        ClaimSUScore(claim_id=claim["id"], score=score, word_breakdown=breakdown),
        total_importance,
    )


def calculate_su_score(
    claims: list[Claim], entailments: list[EntailmentResult]
) -> SUScoreResult:
    by_claim = {e["claim_id"]: e for e in entailments}
    claim_scores: list[ClaimSUScore] = []
    weighted = 0.0
    total_weight = 0.0
    for claim in claims:
        claim_score, weight = score_claim(claim, by_claim.get(claim["id"]))
        claim_scores.append(claim_score)
        weighted += claim_score["score"] * weight
        total_weight += weight

    overall = NEUTRAL_SCORE if total_weight == 0 else clamp_unit(weighted / total_weight)
    return SUScoreResult(overall_score=overall, claim_scores=claim_scores, methodology=METHODOLOGY)
