"""Shared fixtures: a temporary SQLite store and in-memory model fakes."""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest

from journal_recall.errors import ModelUnavailableError
from journal_recall.schemas import EMBEDDING_DIM, EMBEDDING_MODEL_VERSION, ChunkRecord
from journal_recall.storage import SQLiteJournalStore


def unit_vector(*weights: Tuple[int, float]) -> np.ndarray:
    """384-dim vector with the given (index, weight) pairs, L2-normalized."""
    vec = np.zeros(EMBEDDING_DIM, dtype=np.float32)
    for idx, weight in weights:
        vec[idx] = weight
    return vec / np.linalg.norm(vec)


class VocabularyEmbedder:
    """Bag-of-words embedder, one dimension per distinct word; shared words mean closer vectors."""

    def __init__(self):
        self.vocab: Dict[str, int] = {}
        self.calls = 0

    def embed(self, text: str) -> np.ndarray:
        return self.embed_many([text])[0]

    def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        self.calls += 1
        out = []
        for text in texts:
            vec = np.zeros(EMBEDDING_DIM, dtype=np.float32)
            for word in re.findall(r"\w+", text.lower()):
                idx = self.vocab.setdefault(word, len(self.vocab) % EMBEDDING_DIM)
                vec[idx] += 1.0
            norm = np.linalg.norm(vec)
            out.append(vec / norm if norm else vec)
        return out


class UnavailableEmbedder:
    def embed(self, text: str) -> np.ndarray:
        raise ModelUnavailableError("model not downloaded")

    def embed_many(self, texts: List[str]) -> List[np.ndarray]:
        raise ModelUnavailableError("model not downloaded")


class InMemoryVectorStore:
    """Exact cosine-distance stand-in for the Chroma entry and chunk pools."""

    def __init__(self):
        self.entries: Dict[str, Tuple[np.ndarray, str]] = {}
        self.chunks: Dict[str, Tuple[str, np.ndarray]] = {}
        self.entry_queries: List[int] = []
        self.chunk_queries: List[int] = []

    def upsert_entry(self, journal_id, vector, model_version=EMBEDDING_MODEL_VERSION):
        self.entries[journal_id] = (np.asarray(vector, dtype=np.float32), model_version)

    def replace_chunks(self, journal_id, chunks: List[ChunkRecord], model_version=EMBEDDING_MODEL_VERSION):
        self.chunks = {cid: val for cid, val in self.chunks.items() if val[0] != journal_id}
        for chunk in chunks:
            self.chunks[chunk.id] = (journal_id, np.asarray(chunk.embedding, dtype=np.float32))

    def add_chunk(self, journal_id: str, index: int, vector: np.ndarray) -> None:
        self.chunks[f"{journal_id}#{index}"] = (journal_id, vector)

    def delete_entry(self, journal_id):
        self.entries.pop(journal_id, None)
        self.chunks = {cid: val for cid, val in self.chunks.items() if val[0] != journal_id}

    def embedding_version(self, journal_id) -> Optional[str]:
        item = self.entries.get(journal_id)
        return item[1] if item else None

    def embedded_versions(self) -> Dict[str, str]:
        return {jid: version for jid, (_, version) in self.entries.items()}

    def query_entries(self, vector, n_results):
        self.entry_queries.append(n_results)
        q = np.asarray(vector, dtype=np.float32)
        scored = [(jid, float(1.0 - np.dot(q, vec))) for jid, (vec, _) in self.entries.items()]
        scored.sort(key=lambda item: (item[1], item[0]))
        return scored[:n_results]

    def query_chunks(self, vector, n_results):
        self.chunk_queries.append(n_results)
        q = np.asarray(vector, dtype=np.float32)
        scored = [(jid, float(1.0 - np.dot(q, vec)), cid) for cid, (jid, vec) in self.chunks.items()]
        scored.sort(key=lambda item: (item[1], item[2]))
        return [(jid, dist) for jid, dist, _ in scored[:n_results]]

    def entry_count(self) -> int:
        return len(self.entries)

    def chunk_count(self) -> int:
        return len(self.chunks)


@pytest.fixture
def store(tmp_path):
    """Provide an empty journal store on disk."""
    db = SQLiteJournalStore(str(tmp_path / "journal.db"))
    yield db
    db.close()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def embedder():
    return VocabularyEmbedder()


@pytest.fixture
def base_time():
    return datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def corpus(store, base_time):
    """The three-entry corpus plus one archived 'good morning' entry."""
    entries = {
        "good_day": store.add_entry("Today was a good day", created_at=base_time, entry_id="good_day"),
        "anxious": store.add_entry(
            "Feeling anxious about tomorrow", created_at=base_time + timedelta(days=1), entry_id="anxious"
        ),
        "sunshine": store.add_entry(
            "Good morning sunshine", created_at=base_time + timedelta(days=2), entry_id="sunshine"
        ),
        "archived": store.add_entry(
            "Good morning from last year",
            created_at=base_time - timedelta(days=365),
            entry_id="archived",
            is_archived=True,
        ),
    }
    return entries
