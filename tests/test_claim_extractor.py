"""Tests for agents.claim_extractor — parsing, spans, fallbacks, call failures."""

from __future__ import annotations

import json

import pytest
from conftest import make_caller

from deep_research_judge.agents.claim_extractor import (
    ClaimExtractionError,
    ClaimExtractor,
    fallback_claim,
    parse_claim,
    resolve_span,
)
from deep_research_judge.contracts import ClaimType, WordType

ANSWER = (
    "The Blue Note opened in 1981. "
    "Jazz Night starts at 8:00 PM on Nov 29, 2024."
)


def _claims_reply() -> str:
    return json.dumps(
        [
            {
                "text": "The Blue Note opened in 1981.",
                "type": "temporal",
                "substantiveWords": [
                    {"word": "Blue Note", "type": "proper_noun", "position": 4},
                    {"word": "1981", "type": "numeral", "position": 24},
                    {"word": "opened", "type": "verb"},
                    {"word": "club", "type": "adjective", "position": 0},
                ],
            },
            {
                "text": "Jazz Night starts at 8:00 PM",
                "type": "speculative",
                "substantiveWords": [],
            },
            {"text": "", "type": "factual", "substantiveWords": []},
            {"text": "Missing words list", "type": "factual"},
        ]
    )


class TestHelpers:
    def test_resolve_span_found(self):
        span = resolve_span(ANSWER, "Jazz Night starts")
        assert ANSWER[span["start"] : span["end"]] == "Jazz Night starts"

    def test_resolve_span_not_found_covers_answer(self):
        assert resolve_span(ANSWER, "paraphrased claim") == {"start": 0, "end": len(ANSWER)}

    def test_fallback_claim_truncates(self):
        claim = fallback_claim("a" * 800)
        assert claim["text"] == "a" * 500
        assert claim["type"] == ClaimType.FACTUAL
        assert claim["substantive_words"] == []
        assert claim["source_span"] == {"start": 0, "end": 500}
        assert claim["id"].startswith("cl-")

    def test_parse_claim_rejects_missing_words(self):
        assert parse_claim({"text": "x", "type": "factual"}, ANSWER) is None
        assert parse_claim("not a dict", ANSWER) is None


class TestExtractClaims:
    @pytest.mark.asyncio
    async def test_parses_valid_claims(self, eval_config):
        caller = make_caller({"claim_extractor": _claims_reply()})
        claims = await ClaimExtractor(caller, eval_config).extract_claims(ANSWER)

        assert len(claims) == 2
        first, second = claims
        assert first["type"] == ClaimType.TEMPORAL
        assert first["source_span"] == {"start": 0, "end": 29}
        words = {w["word"]: w for w in first["substantive_words"]}
        assert set(words) == {"Blue Note", "1981", "opened"}
        assert words["Blue Note"]["importance"] == 1.0
        assert words["1981"]["type"] == WordType.NUMERAL
        assert words["1981"]["importance"] == 0.95
        # Missing position is recovered from the claim text
        assert words["opened"]["position"] == first["text"].find("opened")
        # Unknown claim type falls back to factual
        assert second["type"] == ClaimType.FACTUAL
        assert first["id"] != second["id"]

    @pytest.mark.asyncio
    async def test_uses_confidence_judge_model(self, eval_config):
        caller = make_caller({"claim_extractor": _claims_reply()})
        await ClaimExtractor(caller, eval_config).extract_claims(ANSWER)
        assert caller.call.call_args.kwargs["model"] == eval_config.confidence.judge_model

    @pytest.mark.asyncio
    async def test_empty_answer_skips_call(self, eval_config):
        caller = make_caller()
        assert await ClaimExtractor(caller, eval_config).extract_claims("  ") == []
        caller.call.assert_not_called()

    @pytest.mark.asyncio
    async def test_unparsable_output_falls_back(self, eval_config):
        caller = make_caller({"claim_extractor": "The answer contains two claims."})
        claims = await ClaimExtractor(caller, eval_config).extract_claims(ANSWER)
        assert len(claims) == 1
        assert claims[0]["text"] == ANSWER

    @pytest.mark.asyncio
    async def test_no_valid_claims_falls_back(self, eval_config):
        caller = make_caller({"claim_extractor": '[{"text": ""}]'})
        claims = await ClaimExtractor(caller, eval_config).extract_claims(ANSWER)
        assert len(claims) == 1
        assert claims[0]["type"] == ClaimType.FACTUAL

    @pytest.mark.asyncio
    async def test_call_failure_raises(self, eval_config):
        caller = make_caller({"claim_extractor": RuntimeError("JudgeCaller failed")})
        with pytest.raises(ClaimExtractionError, match="JudgeCaller failed"):
            await ClaimExtractor(caller, eval_config).extract_claims(ANSWER)
