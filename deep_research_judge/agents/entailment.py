"""Entailment checker — does the retrieved evidence support a claim?

Two steps per claim:
1. Retrieve the most similar passages per source by embedding similarity.
2. Ask a judge whether those passages entail, contradict or ignore the claim.

Every failure degrades to a neutral verdict (score 0.5); nothing raises.
"""

from __future__ import annotations

import asyncio
import sys

from deep_research_judge.agents.base import JudgeCaller
from deep_research_judge.config import EvaluationConfig
from deep_research_judge.contracts import (
    Claim,
    EntailmentResult,
    EntailmentVerdict,
    EvidenceSource,
    RetrievedContent,
    SourceEvidence,
)
from deep_research_judge.extractors.chunker import chunk_passages
from deep_research_judge.scoring.embedding import EmbeddingProvider, cosine_similarity
from deep_research_judge.utils.json_repair import parse_json_object
from deep_research_judge.utils.scores import clamp_unit, coerce_unit

ENTAILMENT_SYSTEM = """\
You are a natural language inference judge. You decide whether source \
passages support a claim. Judge only from the passages. Output STRICT JSON only."""

ENTAILMENT_TEMPLATE = """\
## Claim
{claim}

## Source Passages
{passages}

## Instructions
- "entailed": the passages state or directly imply the claim.
- "contradicted": the passages state something incompatible with the claim.
- "neutral": the passages neither support nor contradict it.
- score is your confidence in the verdict, 0.0-1.0.
- List passage numbers (as shown in brackets) that support or contradict the claim.

## Response Format (JSON)
{
  "verdict": "entailed" | "neutral" | "contradicted",
  "score": <0.0-1.0>,
  "supportingPassages": [<passage number>],
  "contradictingPassages": [<passage number>],
  "reasoning": "<one or two sentences>"
}

Respond ONLY with valid JSON."""

NEUTRAL_SCORE = 0.5


def to_evidence_sources(items: list[RetrievedContent]) -> list[EvidenceSource]:
    """Give retrieved pages stable ids for evidence bookkeeping."""
    sources: list[EvidenceSource] = []
    for i, item in enumerate(items, 1):
        source = EvidenceSource(id=f"src-{i:03d}", url=item["url"], content=item.get("content", ""))
        if item.get("title"):
            source["title"] = item["title"]
        sources.append(source)
    return sources


def neutral_result(claim_id: str, reasoning: str) -> EntailmentResult:
    return EntailmentResult(
        claim_id=claim_id,
        verdict=EntailmentVerdict.NEUTRAL,
        score=NEUTRAL_SCORE,
        supporting_sources=[],
        contradicting_sources=[],
        reasoning=reasoning,
    )


def format_passages(passages: list[SourceEvidence]) -> str:
    return "\n\n".join(
        f"[Passage {i}] (source: {p['source_url']}, similarity {p['similarity']:.2f})\n{p['passage']}"
        for i, p in enumerate(passages)
    )


def _pick(passages: list[SourceEvidence], indices) -> list[SourceEvidence]:
    """Map judge-returned indices onto passages; anything out of range is dropped."""
    if not isinstance(indices, list):
        return []
    picked: list[SourceEvidence] = []
    seen: set[int] = set()
    for idx in indices:
        if isinstance(idx, bool) or not isinstance(idx, int):
            continue
        if 0 <= idx < len(passages) and idx not in seen:
            seen.add(idx)
            picked.append(passages[idx])
    return picked


class EntailmentChecker:
    def __init__(
        self,
        caller: JudgeCaller,
        embedder: EmbeddingProvider,
        config: EvaluationConfig,
    ) -> None:
        self._caller = caller
        self._embedder = embedder
        self._config = config.confidence

    async def _encode(self, text: str) -> list[float]:
        return await asyncio.to_thread(self._embedder.encode, text)

    async def find_relevant_passages(
        self, claim_text: str, sources: list[EvidenceSource]
    ) -> list[SourceEvidence]:
        """Passages at or above the similarity threshold, most similar first.

        Candidates from every source are ranked together and capped at
        max_passages_per_source x number of sources in total, so one source
        may contribute more than its share. A chunk that fails to embed is
        skipped.
        """
        cfg = self._config
        claim_vector = await self._encode(claim_text)
        semaphore = asyncio.Semaphore(max(1, cfg.embedding_concurrency))

        async def embed_chunk(chunk: str) -> list[float] | None:
            async with semaphore:
                try:
                    return await self._encode(chunk)
                except Exception as e:
                    print(f"WARNING: failed to embed passage, skipping: {e}", file=sys.stderr)
                    return None

        evidence: list[SourceEvidence] = []
        for source in sources:
            chunks = chunk_passages(
                source["content"], max_chars=cfg.max_chunk_chars, min_chars=cfg.min_chunk_chars
            )
            if not chunks:
                continue
            vectors = await asyncio.gather(*(embed_chunk(c) for c in chunks))

            for chunk, vector in zip(chunks, vectors):
                if vector is None:
                    continue
                similarity = clamp_unit(cosine_similarity(claim_vector, vector))
                if similarity >= cfg.similarity_threshold:
                    evidence.append(
                        SourceEvidence(
                            source_id=source["id"],
                            source_url=source["url"],
                            passage=chunk,
                            similarity=round(similarity, 4),
                        )
                    )

        evidence.sort(key=lambda e: e["similarity"], reverse=True)
        return evidence[: cfg.max_passages_per_source * len(sources)]

    async def check_entailment(
        self, claim: Claim, sources: list[EvidenceSource]
    ) -> EntailmentResult:
        try:
            passages = await self.find_relevant_passages(claim["text"], sources)
        except Exception as e:
            print(f"WARNING: passage retrieval failed for {claim['id']}: {e}", file=sys.stderr)
            return neutral_result(claim["id"], f"Passage retrieval failed: {e}")

        if not passages:
            return neutral_result(claim["id"], "No relevant source passages found")

        prompt = ENTAILMENT_TEMPLATE.replace("{claim}", claim["text"]).replace(
            "{passages}", format_passages(passages)
        )
        try:
            text, _ = await self._caller.call(
                system=ENTAILMENT_SYSTEM,
                messages=[{"role": "user", "content": prompt}],
                agent_name="entailment_checker",
                model=self._config.judge_model,
                max_tokens=1024,
            )
            data = parse_json_object(text)
        except Exception as e:
            print(f"WARNING: entailment check failed for {claim['id']}: {e}", file=sys.stderr)
            return neutral_result(claim["id"], f"Entailment assessment failed: {e}")

        try:
            verdict = EntailmentVerdict(str(data.get("verdict", "")).lower())
        except ValueError:
            verdict = EntailmentVerdict.NEUTRAL
        score = coerce_unit(data.get("score"))

        return EntailmentResult(
            claim_id=claim["id"],
            verdict=verdict,
            score=NEUTRAL_SCORE if score is None else score,
            supporting_sources=_pick(passages, data.get("supportingPassages")),
            contradicting_sources=_pick(passages, data.get("contradictingPassages")),
            reasoning=str(data.get("reasoning") or ""),
        )
