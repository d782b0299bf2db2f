"""Passage chunking for entailment retrieval.

Two-tier strategy:
1. Double newlines (paragraph boundaries)
2. Sentence packing for paragraphs longer than max_chars

Chunks shorter than min_chars are dropped; they rarely carry a checkable fact.
"""

from __future__ import annotations

import re

_PARAGRAPH_RE = re.compile(r"\n\n+")
# A sentence, or a trailing fragment with no terminal punctuation
_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


def _split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_RE.findall(text) if s.strip()]


def _pack_sentences(sentences: list[str], max_chars: int) -> list[str]:
    """Greedily pack sentences into chunks of at most max_chars (a lone long sentence stays whole)."""
    chunks: list[str] = []
    current = ""
    for sentence in sentences:
        if current and len(current) + 1 + len(sentence) > max_chars:
            chunks.append(current)
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence
    if current:
        chunks.append(current)
    return chunks


def chunk_passages(text: str, *, max_chars: int = 1000, min_chars: int = 50) -> list[str]:
    """Split source content into passages for similarity search."""
    if not text or not text.strip():
        return []

    chunks: list[str] = []
    for paragraph in _PARAGRAPH_RE.split(text):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= max_chars:
            chunks.append(paragraph)
        else:
            chunks.extend(_pack_sentences(_split_sentences(paragraph), max_chars))

    return [c for c in chunks if len(c) >= min_chars]
