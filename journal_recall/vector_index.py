"""Semantic channel: merges entry and chunk neighbours into one entry ranking."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Protocol, Sequence, Set, Tuple

from .embeddings import validate_vector
from .schemas import ArchiveFilter, JournalEntry, RetrievalHit


logger = logging.getLogger(__name__)

ENTRY_WINDOW_FACTOR = 2
CHUNK_WINDOW_FACTOR = 3


class VectorPool(Protocol):
    def query_entries(self, vector: Sequence[float], n_results: int) -> List[Tuple[str, float]]: ...

    def query_chunks(self, vector: Sequence[float], n_results: int) -> List[Tuple[str, float]]: ...


class EntryLookup(Protocol):
    def fetch_entries(self, ids: Iterable[str]) -> Mapping[str, JournalEntry]: ...


def merge_min_distance(
    entry_hits: Iterable[Tuple[str, float]],
    chunk_hits: Iterable[Tuple[str, float]],
) -> Dict[str, float]:
    """Best (smallest) distance per entry across its own vector and its chunks."""
    best: Dict[str, float] = {}
    for journal_id, distance in list(entry_hits) + list(chunk_hits):
        current = best.get(journal_id)
        if current is None or distance < current:
            best[journal_id] = distance
    return best


class VectorSimilarityIndex:
    """Nearest-entry search over the entry and chunk vector pools."""

    def __init__(self, pool: VectorPool, entries: EntryLookup):
        self.pool = pool
        self.entries = entries

    def search_similar(
        self,
        query_vector: Sequence[float],
        limit: int,
        archive_filter: ArchiveFilter = ArchiveFilter.ANY,
    ) -> List[RetrievalHit]:
        """Entries ordered by ascending distance, at most ``limit`` of them.

        When filtering drops candidates the pools are queried again with
        wider windows until ``limit`` entries survive or the pools run dry.
        """
        vec = validate_vector(query_vector)
        if limit <= 0:
            return []

        entry_window = limit * ENTRY_WINDOW_FACTOR
        chunk_window = limit * CHUNK_WINDOW_FACTOR
        reported: Set[str] = set()

        while True:
            entry_hits = self.pool.query_entries(vec, entry_window)
            chunk_hits = self.pool.query_chunks(vec, chunk_window)
            best = merge_min_distance(entry_hits, chunk_hits)
            ranked = sorted(best.items(), key=lambda item: (item[1], item[0]))

            survivors = self._filter(ranked, limit, archive_filter, reported)
            exhausted = len(entry_hits) < entry_window and len(chunk_hits) < chunk_window
            if len(survivors) >= limit or exhausted:
                break
            entry_window *= 2
            chunk_window *= 2

        logger.debug(
            "Vector search kept %d of %d candidates (entry_window=%d, chunk_window=%d)",
            len(survivors),
            len(ranked),
            entry_window,
            chunk_window,
        )
        return [
            RetrievalHit(entity_id=journal_id, score=distance, rank=idx)
            for idx, (journal_id, distance) in enumerate(survivors, start=1)
        ]

    def _filter(
        self,
        ranked: List[Tuple[str, float]],
        limit: int,
        archive_filter: ArchiveFilter,
        reported: Set[str],
    ) -> List[Tuple[str, float]]:
        known = self.entries.fetch_entries(journal_id for journal_id, _ in ranked)
        out: List[Tuple[str, float]] = []
        for journal_id, distance in ranked:
            entry = known.get(journal_id)
            if entry is None:
                if journal_id not in reported:
                    logger.warning("Orphaned embedding found: journal '%s' no longer exists", journal_id)
                    reported.add(journal_id)
                continue
            if not archive_filter.allows(entry.is_archived):
                continue
            out.append((journal_id, distance))
            if len(out) >= limit:
                break
        return out
