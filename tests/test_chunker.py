"""Tests for extractors.chunker — paragraph split, sentence packing, short-chunk drop."""

from __future__ import annotations

from deep_research_judge.extractors.chunker import chunk_passages

PARA_A = "The Blue Note Jazz Club opened in Greenwich Village in 1981 and seats two hundred."
PARA_B = "Its late night sessions start after the main show and feature local musicians."


class TestChunkPassages:
    def test_paragraphs_become_chunks(self):
        chunks = chunk_passages(f"{PARA_A}\n\n{PARA_B}")
        assert chunks == [PARA_A, PARA_B]

    def test_short_chunks_dropped(self):
        chunks = chunk_passages(f"Menu\n\n{PARA_A}\n\nContact us")
        assert chunks == [PARA_A]

    def test_long_paragraph_packed_by_sentence(self):
        sentence = "Jazz Night starts at eight in the evening at the club."
        paragraph = " ".join([sentence] * 10)
        chunks = chunk_passages(paragraph, max_chars=120, min_chars=10)
        assert len(chunks) > 1
        assert all(len(c) <= 120 for c in chunks)
        assert " ".join(chunks) == paragraph

    def test_single_long_sentence_kept_whole(self):
        sentence = "word " * 60 + "end."
        chunks = chunk_passages(sentence, max_chars=100, min_chars=10)
        assert chunks == [sentence.strip()]

    def test_empty_text(self):
        assert chunk_passages("") == []
        assert chunk_passages("   \n\n  ") == []
