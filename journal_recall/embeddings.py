"""Chroma-backed vector pools for entry-level and chunk-level embeddings."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import chromadb
import numpy as np

from .config import EmbeddingConfig
from .errors import EmbeddingDimensionError
from .schemas import EMBEDDING_DIM, EMBEDDING_MODEL_VERSION, ChunkRecord


logger = logging.getLogger(__name__)


def validate_vector(vector: Iterable[float], dim: int = EMBEDDING_DIM) -> np.ndarray:
    """Return ``vector`` as a float32 array, rejecting any other length."""
    arr = np.asarray(vector, dtype=np.float32).reshape(-1)
    if arr.shape[0] != dim:
        raise EmbeddingDimensionError(dim, int(arr.shape[0]))
    return arr


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vector))
    if norm == 0.0 or np.isnan(norm):
        return vector
    return (vector / norm).astype(np.float32)


def _first(result: dict, key: str) -> list:
    value = result.get(key)
    if value is None or len(value) == 0:
        return []
    return list(value[0])


class ChromaVectorStore:
    """Persists entry and chunk vectors in two local Chroma collections.

    Vectors are always supplied by the caller; Chroma only stores and searches
    them (cosine space, so distance is ``1 - cosine similarity``).
    """

    def __init__(
        self,
        chroma_dir: Optional[str],
        config: EmbeddingConfig,
        client: Optional[chromadb.api.ClientAPI] = None,
    ):
        if client is None:
            if chroma_dir is None:
                client = chromadb.EphemeralClient()
            else:
                Path(chroma_dir).mkdir(parents=True, exist_ok=True)
                client = chromadb.PersistentClient(path=chroma_dir)
        self.client = client
        self.entries = self.client.get_or_create_collection(
            name=config.entry_collection,
            embedding_function=None,
            metadata={"hnsw:space": "cosine"},
        )
        self.chunks = self.client.get_or_create_collection(
            name=config.chunk_collection,
            embedding_function=None,
            metadata={"hnsw:space": "cosine"},
        )

    # -- writes ----------------------------------------------------------

    def upsert_entry(
        self,
        journal_id: str,
        vector: Sequence[float],
        model_version: str = EMBEDDING_MODEL_VERSION,
    ) -> None:
        vec = validate_vector(vector)
        self.entries.upsert(
            ids=[journal_id],
            embeddings=[vec.tolist()],
            metadatas=[{"journal_id": journal_id, "model_version": model_version}],
        )

    def replace_chunks(
        self,
        journal_id: str,
        chunks: List[ChunkRecord],
        model_version: str = EMBEDDING_MODEL_VERSION,
    ) -> None:
        """Drop every stored chunk of an entry, then insert ``chunks``."""
        vectors = []
        for chunk in chunks:
            if chunk.embedding is None:
                raise ValueError(f"Chunk {chunk.id} has no embedding")
            vectors.append(validate_vector(chunk.embedding).tolist())

        self.chunks.delete(where={"journal_id": journal_id})
        if not chunks:
            return
        self.chunks.add(
            ids=[chunk.id for chunk in chunks],
            embeddings=vectors,
            documents=[chunk.text for chunk in chunks],
            metadatas=[
                {
                    "journal_id": journal_id,
                    "chunk_index": int(chunk.chunk_index),
                    "model_version": model_version,
                }
                for chunk in chunks
            ],
        )

    def delete_entry(self, journal_id: str) -> None:
        self.entries.delete(ids=[journal_id])
        self.chunks.delete(where={"journal_id": journal_id})

    # -- reads -----------------------------------------------------------

    def embedding_version(self, journal_id: str) -> Optional[str]:
        """Model version of an entry's stored embedding, or None if absent."""
        records = self.entries.get(ids=[journal_id], include=["metadatas"])
        metas = records.get("metadatas") or []
        if not metas:
            return None
        return (metas[0] or {}).get("model_version", "")

    def has_embedding(self, journal_id: str) -> bool:
        return self.embedding_version(journal_id) is not None

    def embedded_versions(self) -> Dict[str, str]:
        """Model version of every stored entry vector, keyed by journal id."""
        records = self.entries.get(include=["metadatas"])
        ids = records.get("ids") or []
        metas = records.get("metadatas") or []
        out: Dict[str, str] = {}
        for idx, entry_id in enumerate(ids):
            meta = metas[idx] if idx < len(metas) and metas[idx] else {}
            out[entry_id] = str(meta.get("model_version", ""))
        return out

    def query_entries(self, vector: Sequence[float], n_results: int) -> List[Tuple[str, float]]:
        """Nearest entry-level vectors as ``(journal_id, distance)``."""
        vec = validate_vector(vector)
        n = min(n_results, self.entries.count())
        if n <= 0:
            return []
        result = self.entries.query(
            query_embeddings=[vec.tolist()],
            n_results=n,
            include=["distances"],
        )
        ids = _first(result, "ids")
        distances = _first(result, "distances")
        return [(entry_id, float(distances[i])) for i, entry_id in enumerate(ids) if i < len(distances)]

    def query_chunks(self, vector: Sequence[float], n_results: int) -> List[Tuple[str, float]]:
        """Nearest chunk vectors as ``(parent journal_id, distance)``."""
        vec = validate_vector(vector)
        n = min(n_results, self.chunks.count())
        if n <= 0:
            return []
        result = self.chunks.query(
            query_embeddings=[vec.tolist()],
            n_results=n,
            include=["distances", "metadatas"],
        )
        distances = _first(result, "distances")
        metas = _first(result, "metadatas")
        out: List[Tuple[str, float]] = []
        for i, meta in enumerate(metas):
            if not meta or "journal_id" not in meta or i >= len(distances):
                logger.warning("Chunk vector without parent journal_id skipped")
                continue
            out.append((str(meta["journal_id"]), float(distances[i])))
        return out

    def entry_count(self) -> int:
        return self.entries.count()

    def chunk_count(self) -> int:
        return self.chunks.count()
