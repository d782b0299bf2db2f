"""Claim extractor — splits an answer into atomic, checkable claims.

A judge call that raises is NOT absorbed here: it surfaces as
ClaimExtractionError so an answer whose claims could not be read is never
reported as confidently supported. Unparsable or empty output falls back to
a single claim covering the answer's opening text.
"""

from __future__ import annotations

import sys
import uuid

from deep_research_judge.agents.base import JudgeCaller
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import (
    Claim,
    ClaimType,
    SourceSpan,
    SubstantiveWord,
    WordType,
)
from deep_research_judge.scoring.suscore import WORD_WEIGHTS
from deep_research_judge.utils.json_repair import JudgeResponseError, parse_json_array

FALLBACK_CLAIM_CHARS = 500

CLAIM_EXTRACTION_SYSTEM = """\
You are a claim extraction specialist. You break answers into atomic factual \
claims that can each be checked against sources. Output STRICT JSON only."""

CLAIM_EXTRACTION_TEMPLATE = """\
Extract every atomic claim from the answer below.

## Answer
{answer}

## Instructions
- One claim per checkable statement; split compound sentences.
- Copy the claim text verbatim from the answer where possible.
- type is one of: factual, comparative, temporal, causal, opinion.
- For each claim list its substantive words: the words whose correctness decides \
whether the claim is true.
  - word type is one of: proper_noun, numeral, noun, verb.
  - position is the word's character offset within the claim text.

## Response Format (JSON array)
[
  {
    "text": "<claim text>",
    "type": "factual",
    "substantiveWords": [
      {"word": "<word>", "type": "proper_noun", "position": 0}
    ]
  }
]

Respond ONLY with a valid JSON array."""


class ClaimExtractionError(RuntimeError):
    """The judge call behind claim extraction failed."""


def _new_claim_id() -> str:
    return f"cl-{uuid.uuid4().hex[:12]}"


def resolve_span(answer: str, claim_text: str) -> SourceSpan:
    """Offsets of the claim in the answer; the full answer when not found verbatim."""
    start = answer.find(claim_text)
    if start == -1:
        return SourceSpan(start=0, end=len(answer))
    return SourceSpan(start=start, end=start + len(claim_text))


def fallback_claim(answer: str) -> Claim:
    text = answer[:FALLBACK_CLAIM_CHARS]
    return Claim(
        id=_new_claim_id(),
        text=text,
        type=ClaimType.FACTUAL,
        substantive_words=[],
        source_span=SourceSpan(start=0, end=min(FALLBACK_CLAIM_CHARS, len(answer))),
    )


def _parse_word(raw, claim_text: str) -> SubstantiveWord | None:
    if not isinstance(raw, dict):
        return None
    word = raw.get("word")
    if not isinstance(word, str) or not word.strip():
        return None
    try:
        word_type = WordType(raw.get("type"))
    except ValueError:
        return None
    position = raw.get("position")
    if isinstance(position, bool) or not isinstance(position, int) or position < 0:
        position = max(0, claim_text.find(word))
    return SubstantiveWord(
        word=word,
        type=word_type,
        position=position,
        importance=WORD_WEIGHTS[word_type],
    )


def parse_claim(raw, answer: str) -> Claim | None:
    """Validate one judge-proposed claim. None when text or word list is missing."""
    if not isinstance(raw, dict):
        return None
    text = raw.get("text")
    words = raw.get("substantiveWords")
    if not isinstance(text, str) or not text.strip() or not isinstance(words, list):
        return None
    text = text.strip()
    try:
        claim_type = ClaimType(raw.get("type"))
    except ValueError:
        claim_type = ClaimType.FACTUAL

    parsed = [w for w in (_parse_word(item, text) for item in words) if w is not None]
    return Claim(
        id=_new_claim_id(),
        text=text,
        type=claim_type,
        substantive_words=parsed,
        source_span=resolve_span(answer, text),
    )


class ClaimExtractor:
    def __init__(self, caller: JudgeCaller, config: EvaluationConfig) -> None:
        self._caller = caller
        self._model = config.confidence.judge_model

    async def extract_claims(self, answer: str) -> list[Claim]:
        """Claims in answer order. Empty only when the answer itself is empty."""
        if not answer or not answer.strip():
            return []

        try:
            text, _ = await self._caller.call(
                system=CLAIM_EXTRACTION_SYSTEM,
                messages=[
                    {
                        "role": "user",
                        "content": CLAIM_EXTRACTION_TEMPLATE.replace("{answer}", answer),
                    }
                ],
                agent_name="claim_extractor",
                model=self._model,
                max_tokens=4096,
            )
        except Exception as e:
            raise ClaimExtractionError(f"Claim extraction call failed: {e}") from e

        try:
            items = parse_json_array(text)
        except JudgeResponseError as e:
            print(f"WARNING: claim extraction output unparsable, using fallback: {e}", file=sys.stderr)
            return [fallback_claim(answer)]

        claims = [c for c in (parse_claim(item, answer) for item in items) if c is not None]
        if not claims:
            print("WARNING: claim extraction returned no valid claims, using fallback", file=sys.stderr)
            return [fallback_claim(answer)]
        return claims
