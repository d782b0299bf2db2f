"""Tests for scoring.suscore — word uncertainty and claim/overall SU scores."""

from __future__ import annotations

import pytest

from deep_research_judge.contracts import (
    Claim,
    ClaimType,
    EntailmentResult,
    EntailmentVerdict,
    SourceSpan,
    SubstantiveWord,
    WordType,
)
from deep_research_judge.scoring.suscore import (
    METHODOLOGY,
    base_uncertainty,
    calculate_su_score,
    score_claim,
    word_importance,
)


def _word(word: str, word_type: WordType) -> SubstantiveWord:
    return SubstantiveWord(word=word, type=word_type, position=0, importance=1.0)


def _claim(claim_id: str, words: list[SubstantiveWord]) -> Claim:
    return Claim(
        id=claim_id,
        text="The Blue Note opened in 1981.",
        type=ClaimType.TEMPORAL,
        substantive_words=words,
        source_span=SourceSpan(start=0, end=29),
    )


def _entailment(claim_id: str, verdict: EntailmentVerdict, score: float) -> EntailmentResult:
    return EntailmentResult(
        claim_id=claim_id,
        verdict=verdict,
        score=score,
        supporting_sources=[],
        contradicting_sources=[],
        reasoning="",
    )


WORDS = [_word("Blue Note", WordType.PROPER_NOUN), _word("1981", WordType.NUMERAL)]


class TestWordImportance:
    def test_known_types(self):
        assert word_importance(WordType.PROPER_NOUN) == 1.0
        assert word_importance("numeral") == 0.95
        assert word_importance(WordType.VERB) == 0.7

    def test_unknown_type_gets_default(self):
        assert word_importance("adjective") == 0.5


class TestBaseUncertainty:
    def test_by_verdict(self):
        assert base_uncertainty(_entailment("c", EntailmentVerdict.ENTAILED, 1.0)) == pytest.approx(0.1)
        assert base_uncertainty(_entailment("c", EntailmentVerdict.ENTAILED, 0.0)) == pytest.approx(0.3)
        assert base_uncertainty(_entailment("c", EntailmentVerdict.NEUTRAL, 0.9)) == 0.5
        assert base_uncertainty(_entailment("c", EntailmentVerdict.CONTRADICTED, 1.0)) == pytest.approx(0.8)
        assert base_uncertainty(None) == 0.5


class TestScoreClaim:
    def test_entailed_claim_scores_high(self):
        score, weight = score_claim(
            _claim("c1", WORDS), _entailment("c1", EntailmentVerdict.ENTAILED, 1.0)
        )
        # 1 - (1.0*0.1 + 0.95*0.095) / 1.95
        assert score["score"] == pytest.approx(1 - 0.19025 / 1.95)
        assert weight == pytest.approx(1.95)
        breakdown = score["word_breakdown"]
        assert [w["word"] for w in breakdown] == ["Blue Note", "1981"]
        assert [w["uncertainty"] for w in breakdown] == pytest.approx([0.1, 0.095])
        assert [w["contribution"] for w in breakdown] == pytest.approx([0.1, 0.95 * 0.095])
        assert sum(w["contribution"] for w in breakdown) == pytest.approx(0.19025)

    def test_contradicted_claim_scores_low(self):
        score, _ = score_claim(
            _claim("c1", WORDS), _entailment("c1", EntailmentVerdict.CONTRADICTED, 1.0)
        )
        assert score["score"] == pytest.approx(1 - (0.8 + 0.95 * 0.76) / 1.95)
        assert score["score"] < 0.3

    def test_no_words_is_neutral(self):
        score, weight = score_claim(_claim("c1", []), None)
        assert score["score"] == 0.5
        assert weight == 0.0


class TestCalculateSUScore:
    def test_weighted_by_importance(self):
        claims = [
            _claim("c1", WORDS),
            _claim("c2", [_word("opened", WordType.VERB)]),
        ]
        entailments = [
            _entailment("c1", EntailmentVerdict.ENTAILED, 1.0),
            _entailment("c2", EntailmentVerdict.CONTRADICTED, 1.0),
        ]
        result = calculate_su_score(claims, entailments)

        c1 = 1 - 0.19025 / 1.95
        c2 = 1 - (0.7 * 0.56) / 0.7
        expected = (c1 * 1.95 + c2 * 0.7) / 2.65
        assert result["overall_score"] == pytest.approx(expected)
        assert [c["claim_id"] for c in result["claim_scores"]] == ["c1", "c2"]
        assert result["methodology"] == METHODOLOGY

    def test_no_claims_is_neutral(self):
        assert calculate_su_score([], [])["overall_score"] == 0.5

    def test_missing_entailment_uses_neutral_base(self):
        result = calculate_su_score([_claim("c1", WORDS)], [])
        # base 0.5: uncertainties 0.5 and 0.475
        assert result["overall_score"] == pytest.approx(1 - (0.5 + 0.95 * 0.475) / 1.95)
