"""Hybrid retrieval: lexical + vector channels fused with RRF."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Protocol, Sequence

import numpy as np

from .config import RetrievalConfig
from .embeddings import validate_vector
from .errors import ModelUnavailableError, QueryTooLongError
from .fusion import reciprocal_rank_fusion
from .lexical import LexicalSearchAdapter
from .schemas import ArchiveFilter, FusedResult, RetrievalHit, SearchResult
from .storage import SQLiteJournalStore
from .vector_index import VectorSimilarityIndex


logger = logging.getLogger(__name__)

CANDIDATE_FACTOR = 2


class QueryEmbedder(Protocol):
    def embed(self, text: str) -> np.ndarray: ...


class HybridRetriever:
    """Runs both channels side by side, fuses, and loads the winning entries.

    Without an embedder, or when the model cannot be loaded, the vector
    channel is left out and results are lexical-only.
    """

    def __init__(
        self,
        store: SQLiteJournalStore,
        lexical: LexicalSearchAdapter,
        vector_index: Optional[VectorSimilarityIndex] = None,
        embedder: Optional[QueryEmbedder] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        self.store = store
        self.lexical = lexical
        self.vector_index = vector_index
        self.embedder = embedder
        self.config = config or RetrievalConfig()

    def search(
        self,
        query: str,
        limit: Optional[int] = None,
        include_archived: Optional[bool] = None,
        query_embedding: Optional[Sequence[float]] = None,
    ) -> List[SearchResult]:
        """Return up to ``limit`` entries, best first."""
        limit = self.config.default_limit if limit is None else limit
        if include_archived is None:
            include_archived = self.config.include_archived
        if len(query) > self.config.max_query_chars:
            raise QueryTooLongError(
                f"Query is {len(query)} characters; the limit is {self.config.max_query_chars}"
            )
        if not query.strip() or limit <= 0:
            return []

        archive_filter = ArchiveFilter.from_include_archived(include_archived)
        if query_embedding is not None:
            embedding: Optional[np.ndarray] = validate_vector(query_embedding)
        else:
            embedding = self._embed_query(query)

        fused = self.fuse(query, embedding, limit, archive_filter)
        return self._load(fused)

    def fuse(
        self,
        query: str,
        embedding: Optional[np.ndarray],
        limit: int,
        archive_filter: ArchiveFilter,
    ) -> List[FusedResult]:
        window = limit * CANDIDATE_FACTOR
        use_vectors = embedding is not None and self.vector_index is not None

        with ThreadPoolExecutor(max_workers=2) as pool:
            lexical_future = pool.submit(self.lexical.search, query, window, archive_filter)
            vector_future = (
                pool.submit(self.vector_index.search_similar, embedding, window, archive_filter)
                if use_vectors
                else None
            )
            lexical_hits: List[RetrievalHit] = lexical_future.result()
            vector_hits: Optional[List[RetrievalHit]] = (
                vector_future.result() if vector_future is not None else None
            )

        logger.debug(
            "Fusing %d lexical and %s vector hits",
            len(lexical_hits),
            "no" if vector_hits is None else len(vector_hits),
        )
        return reciprocal_rank_fusion(lexical_hits, vector_hits, limit, k=self.config.rrf_k)

    def get_rag_context(
        self,
        query: str,
        current_entry_id: Optional[str] = None,
        limit: int = 5,
    ) -> List[SearchResult]:
        """Retrieval for chat; the entry being discussed, if any, comes first."""
        results: List[SearchResult] = []
        if current_entry_id is not None:
            pinned = self.store.fetch_entries([current_entry_id]).get(current_entry_id)
            if pinned is not None:
                results.append(
                    SearchResult(
                        entry=pinned,
                        fused=FusedResult(pinned.id, 1.0, lexical_rank=1, vector_rank=1),
                    )
                )

        for result in self.search(query, limit=limit, include_archived=False):
            if result.entry.id != current_entry_id:
                results.append(result)
        return results[:limit]

    def _embed_query(self, query: str) -> Optional[np.ndarray]:
        if self.embedder is None:
            return None
        try:
            return self.embedder.embed(query)
        except ModelUnavailableError as exc:
            logger.warning("Query embedding unavailable, using lexical-only search: %s", exc)
            return None

    def _load(self, fused: List[FusedResult]) -> List[SearchResult]:
        entries = self.store.fetch_entries(item.entity_id for item in fused)
        out: List[SearchResult] = []
        for item in fused:
            entry = entries.get(item.entity_id)
            if entry is None:
                logger.warning("Search hit '%s' no longer exists; skipping", item.entity_id)
                continue
            out.append(SearchResult(entry=entry, fused=item))
        return out
