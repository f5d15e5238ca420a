"""Full-text channel: query normalization and ranking over the FTS5 index."""

from __future__ import annotations

import logging
from typing import List

from .errors import QueryTooLongError
from .schemas import ArchiveFilter, RetrievalHit
from .storage import SQLiteJournalStore


logger = logging.getLogger(__name__)


def build_match_query(query: str) -> str:
    """Turn free text into an FTS5 expression of quoted prefix terms.

    Double quotes are escaped by doubling; every whitespace-separated token
    becomes ``"token"*`` so partial words match. Tokens are joined by spaces,
    which FTS5 combines with AND.
    """
    escaped = query.replace('"', '""')
    return " ".join(f'"{token}"*' for token in escaped.split())


class LexicalSearchAdapter:
    """Ranks entry ids by text relevance."""

    def __init__(self, store: SQLiteJournalStore, max_query_chars: int = 1000):
        self.store = store
        self.max_query_chars = max_query_chars

    def search(
        self,
        query: str,
        limit: int,
        archive_filter: ArchiveFilter = ArchiveFilter.UNARCHIVED_ONLY,
    ) -> List[RetrievalHit]:
        """Return hits in relevance order with 1-based ranks.

        Blank queries match nothing rather than everything.
        """
        if len(query) > self.max_query_chars:
            raise QueryTooLongError(
                f"Query is {len(query)} characters; the limit is {self.max_query_chars}"
            )
        match_query = build_match_query(query)
        if not match_query or limit <= 0:
            return []

        rows = self.store.search_fts(match_query, limit, archive_filter)
        logger.debug("Lexical search returned %d hits (limit=%d)", len(rows), limit)
        return [
            RetrievalHit(entity_id=entry_id, score=bm25, rank=idx)
            for idx, (entry_id, bm25) in enumerate(rows, start=1)
        ]
