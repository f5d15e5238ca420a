"""Sentence-bounded chunking with overlap for fine-grained embeddings."""

from __future__ import annotations

import re
from typing import List

from .config import ChunkingConfig
from .schemas import ChunkRecord, JournalEntry


SENTENCE_BOUNDARY_RE = re.compile(r"(?:[.!?]\s+|\n\n+)")


def _split_sentences(text: str) -> List[str]:
    out: List[str] = []
    for part in SENTENCE_BOUNDARY_RE.split(text):
        sentence = part.strip()
        if not sentence:
            continue
        # The split consumes the terminator; put one back.
        if not sentence.endswith((".", "!", "?")):
            sentence = f"{sentence}."
        out.append(sentence)
    return out


def chunk_text(text: str, max_chars: int, overlap_chars: int) -> List[str]:
    """Split ``text`` into overlapping chunks of at most ``max_chars``.

    Short texts come back unchanged as a single chunk. Longer texts are packed
    sentence by sentence; each new chunk is seeded with the last
    ``overlap_chars`` characters of the previous one. A single sentence longer
    than ``max_chars`` is kept whole.
    """
    if len(text) <= max_chars:
        return [text]

    chunks: List[str] = []
    current = ""

    for sentence in _split_sentences(text):
        proposed = len(sentence) if not current else len(current) + 1 + len(sentence)
        if proposed > max_chars and current:
            chunks.append(current)
            current = current[-overlap_chars:] if overlap_chars > 0 else ""
            # A seed plus this sentence may not fit; drop the seed then.
            if current and len(current) + 1 + len(sentence) > max_chars + overlap_chars:
                current = ""

        current = sentence if not current else f"{current} {sentence}"

    if current:
        chunks.append(current)

    if not chunks:
        chunks.append(text)
    return chunks


class SentenceChunker:
    """Turns journal entries into chunk records."""

    def __init__(self, config: ChunkingConfig):
        self.config = config

    def chunk(self, text: str) -> List[str]:
        return chunk_text(text, self.config.max_chars, self.config.overlap_chars)

    def chunk_entry(self, entry: JournalEntry) -> List[ChunkRecord]:
        return [
            ChunkRecord(journal_id=entry.id, chunk_index=idx, text=piece)
            for idx, piece in enumerate(self.chunk(entry.content))
        ]
