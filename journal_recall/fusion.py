"""Reciprocal Rank Fusion of the lexical and vector rankings."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .schemas import FusedResult, RetrievalHit


RRF_K = 60


def rrf_contribution(rank: int, k: int = RRF_K) -> float:
    """Score for a 1-based rank in one channel."""
    return 1.0 / (k + rank)


def reciprocal_rank_fusion(
    lexical_hits: Sequence[RetrievalHit],
    vector_hits: Optional[Sequence[RetrievalHit]],
    limit: int,
    k: int = RRF_K,
) -> List[FusedResult]:
    """Merge two rankings into one, best first.

    Ranks are taken from list position, so callers pass hits already ordered
    best-first. Entities present in both lists collect both contributions.
    Equal scores are ordered by entity id. Truncation to ``limit`` happens
    after sorting. ``vector_hits=None`` means the vector channel is absent.
    """
    fused: Dict[str, FusedResult] = {}

    for rank, hit in enumerate(lexical_hits, start=1):
        item = fused.setdefault(hit.entity_id, FusedResult(hit.entity_id, 0.0))
        if item.lexical_rank is not None:
            continue
        item.combined_score += rrf_contribution(rank, k)
        item.lexical_rank = rank

    for rank, hit in enumerate(vector_hits or [], start=1):
        item = fused.setdefault(hit.entity_id, FusedResult(hit.entity_id, 0.0))
        if item.vector_rank is not None:
            continue
        item.combined_score += rrf_contribution(rank, k)
        item.vector_rank = rank

    ranked = sorted(fused.values(), key=lambda r: (-r.combined_score, r.entity_id))
    return ranked[: max(0, limit)]


def lexical_only(lexical_hits: Sequence[RetrievalHit], limit: int, k: int = RRF_K) -> List[FusedResult]:
    """Fusion when no query embedding is available."""
    return reciprocal_rank_fusion(lexical_hits, None, limit, k=k)
