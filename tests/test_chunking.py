"""Tests for sentence chunking."""

import re

import pytest

from journal_recall.chunking import SentenceChunker, chunk_text
from journal_recall.config import ChunkingConfig
from journal_recall.schemas import JournalEntry


LONG_TEXT = (
    "I woke up before the alarm. The kitchen was still dark and cold. "
    "I made coffee and sat by the window for a while. "
    "Later my brother called about the trip in June! "
    "We talked for an hour about nothing in particular.\n\n"
    "In the afternoon I walked to the river. Was it worth the rain? "
    "Probably yes, the air smelled like wet stone."
)


def _sentences(text):
    return [s.strip().rstrip(".!?") for s in re.split(r"(?:[.!?]\s+|\n\n+)", text) if s.strip()]


class TestChunkText:
    """Tests for chunk_text."""

    def test_short_text_single_chunk(self):
        """Text within the limit comes back unchanged."""
        text = "This is a short text."
        assert chunk_text(text, 500, 100) == [text]

    def test_text_exactly_at_limit(self):
        text = "x" * 50
        assert chunk_text(text, 50, 10) == [text]

    def test_empty_text(self):
        """Empty input still yields one chunk."""
        assert chunk_text("", 500, 100) == [""]

    def test_long_text_splits(self):
        chunks = chunk_text(LONG_TEXT, 120, 30)
        assert len(chunks) > 1

    def test_chunk_length_bound(self):
        """Every chunk fits max_chars plus the overlap seed."""
        max_chars, overlap = 120, 30
        for chunk in chunk_text(LONG_TEXT, max_chars, overlap):
            assert len(chunk) <= max_chars + overlap

    def test_every_sentence_covered(self):
        chunks = chunk_text(LONG_TEXT, 120, 30)
        joined = " ".join(chunks)
        for sentence in _sentences(LONG_TEXT):
            assert sentence in joined

    def test_overlap_seeds_next_chunk(self):
        """Each chunk after the first starts with the tail of the previous one."""
        overlap = 20
        chunks = chunk_text(LONG_TEXT, 120, overlap)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.startswith(prev[-overlap:])

    def test_zero_overlap(self):
        chunks = chunk_text(LONG_TEXT, 120, 0)
        assert len(chunks) > 1
        assert all(len(c) <= 120 for c in chunks)

    def test_long_sentence_kept_whole(self):
        """A sentence longer than max_chars is not cut mid-word."""
        long_sentence = "word " * 40
        text = f"Short one. {long_sentence.strip()}. Another short one."
        chunks = chunk_text(text, 60, 10)
        assert any(long_sentence.strip() in chunk for chunk in chunks)

    def test_paragraph_breaks_split(self):
        text = "First paragraph without a stop\n\nSecond paragraph also without one\n\nThird"
        chunks = chunk_text(text, 40, 0)
        assert chunks[0] == "First paragraph without a stop."

    def test_deterministic(self):
        assert chunk_text(LONG_TEXT, 100, 25) == chunk_text(LONG_TEXT, 100, 25)

    @pytest.mark.parametrize("max_chars", [40, 80, 200])
    def test_never_empty_for_non_empty_input(self, max_chars):
        assert chunk_text(LONG_TEXT, max_chars, 10)


class TestSentenceChunker:
    """Tests for SentenceChunker."""

    def test_chunk_entry_indexes(self):
        chunker = SentenceChunker(ChunkingConfig(max_chars=120, overlap_chars=30))
        entry = JournalEntry(id="e1", content=LONG_TEXT)
        records = chunker.chunk_entry(entry)

        assert len(records) > 1
        for i, record in enumerate(records):
            assert record.journal_id == "e1"
            assert record.chunk_index == i
            assert record.id == f"e1#{i}"
            assert record.embedding is None

    def test_short_entry_single_record(self):
        chunker = SentenceChunker(ChunkingConfig())
        records = chunker.chunk_entry(JournalEntry(id="e2", content="Quiet day."))
        assert [r.text for r in records] == ["Quiet day."]
