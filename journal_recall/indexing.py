"""Background embedding of journal entries and their chunks."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .capabilities import SentenceTransformerEmbedder
from .chunking import SentenceChunker
from .embeddings import ChromaVectorStore
from .errors import EntryNotFoundError, ModelUnavailableError
from .schemas import EMBEDDING_MODEL_VERSION, ArchiveFilter
from .storage import SQLiteJournalStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbedJob:
    entry_id: str
    force: bool = False


_STOP = object()


class EntryEmbedder:
    """Embeds one entry: entry-level vector plus a fresh set of chunk vectors."""

    def __init__(
        self,
        store: SQLiteJournalStore,
        vectors: ChromaVectorStore,
        embedder: SentenceTransformerEmbedder,
        chunker: SentenceChunker,
        model_version: str = EMBEDDING_MODEL_VERSION,
    ):
        self.store = store
        self.vectors = vectors
        self.embedder = embedder
        self.chunker = chunker
        self.model_version = model_version

    def embed_entry(self, entry_id: str, force: bool = False) -> bool:
        """Embed ``entry_id``; returns False when it was already current."""
        if not force and self.vectors.embedding_version(entry_id) == self.model_version:
            logger.debug("Entry %s already embedded with %s, skipping", entry_id, self.model_version)
            return False

        entry = self.store.get_entry(entry_id)
        chunks = self.chunker.chunk_entry(entry)
        vectors = self.embedder.embed_many([entry.content] + [chunk.text for chunk in chunks])
        for chunk, vec in zip(chunks, vectors[1:]):
            chunk.embedding = vec

        # Chunks first: an entry vector marks the whole set as current.
        self.vectors.replace_chunks(entry.id, chunks, self.model_version)
        self.vectors.upsert_entry(entry.id, vectors[0], self.model_version)
        logger.info("Embedded entry %s (%d chunks)", entry.id, len(chunks))
        return True

    def remove_entry(self, entry_id: str) -> None:
        self.vectors.delete_entry(entry_id)

    def pending_entry_ids(self, archive_filter: ArchiveFilter = ArchiveFilter.ANY) -> List[str]:
        """Entries with no embedding or one from another model version."""
        versions = self.vectors.embedded_versions()
        return [
            entry.id
            for entry in self.store.list_entries(archive_filter)
            if versions.get(entry.id) != self.model_version
        ]


class EmbeddingWorker:
    """Runs ``EntryEmbedder`` jobs on a daemon thread fed by a queue.

    Jobs are idempotent, so re-submitting after a crash or an edit is safe.
    A failing job is logged and the worker moves on.
    """

    def __init__(self, entry_embedder: EntryEmbedder):
        self.entry_embedder = entry_embedder
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._start_lock = threading.Lock()
        self.processed = 0
        self.skipped = 0
        self.failed = 0

    def start(self) -> None:
        with self._start_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name="embedding-worker", daemon=True)
            self._thread.start()
            logger.info("Embedding worker started")

    def submit(self, entry_id: str, force: bool = False) -> None:
        self.start()
        self._queue.put(EmbedJob(entry_id=entry_id, force=force))

    def submit_many(self, entry_ids: Iterable[str], force: bool = False) -> int:
        count = 0
        for entry_id in entry_ids:
            self.submit(entry_id, force=force)
            count += 1
        return count

    def join(self) -> None:
        """Block until every submitted job has been handled."""
        self._queue.join()

    def stop(self, timeout: Optional[float] = None) -> None:
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None
        logger.info("Embedding worker stopped")

    def _run(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is _STOP:
                    return
                self._handle(job)
            finally:
                self._queue.task_done()

    def _handle(self, job: EmbedJob) -> None:
        try:
            if self.entry_embedder.embed_entry(job.entry_id, force=job.force):
                self.processed += 1
            else:
                self.skipped += 1
        except EntryNotFoundError:
            logger.warning("Entry %s vanished before embedding; dropping its vectors", job.entry_id)
            self.entry_embedder.remove_entry(job.entry_id)
            self.failed += 1
        except ModelUnavailableError as exc:
            logger.warning("Embedding model unavailable for entry %s: %s", job.entry_id, exc)
            self.failed += 1
        except Exception:
            logger.exception("Embedding job for entry %s failed", job.entry_id)
            self.failed += 1
