"""Orchestration layer wiring the store, channels, and companion from config."""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from .capabilities import EmotionClassifier, SentenceTransformerEmbedder
from .chunking import SentenceChunker
from .companion import ChatCompanion, GeminiChatClient
from .config import AppConfig
from .context import ContextBudgetFitter
from .embeddings import ChromaVectorStore
from .indexing import EmbeddingWorker, EntryEmbedder
from .lexical import LexicalSearchAdapter
from .prompt import PromptBuilder
from .retrieval import HybridRetriever
from .safety import SafetyGate
from .schemas import ChatReply, JournalEntry, SafetyVerdict, SearchResult
from .storage import SQLiteJournalStore
from .vector_index import VectorSimilarityIndex


class JournalRecallPipeline:
    """High-level pipeline composed of small local-first modules."""

    def __init__(self, config: AppConfig, embedder: Optional[SentenceTransformerEmbedder] = None):
        self.config = config

        self.store = SQLiteJournalStore(config.paths.sqlite_path)
        self.vector_store = ChromaVectorStore(config.paths.chroma_dir, config.embeddings)
        self.embedder = embedder or SentenceTransformerEmbedder(config.embeddings.model_name)
        self.chunker = SentenceChunker(config.chunking)

        self.lexical = LexicalSearchAdapter(self.store, max_query_chars=config.retrieval.max_query_chars)
        self.vector_index = VectorSimilarityIndex(self.vector_store, self.store)
        self.retriever = HybridRetriever(
            store=self.store,
            lexical=self.lexical,
            vector_index=self.vector_index,
            embedder=self.embedder,
            config=config.retrieval,
        )

        self.worker = EmbeddingWorker(
            EntryEmbedder(self.store, self.vector_store, self.embedder, self.chunker)
        )

        self.gate = SafetyGate(config.safety)
        self.emotions = EmotionClassifier(
            model=config.llm.model,
            google_api_key=config.google_api_key,
            enabled=config.llm.emotion_labeling,
        )
        self.companion = ChatCompanion(
            store=self.store,
            retriever=self.retriever,
            gate=self.gate,
            prompt_builder=PromptBuilder(ContextBudgetFitter(config.context)),
            llm=GeminiChatClient(
                model=config.llm.model,
                google_api_key=config.google_api_key,
                temperature=config.llm.temperature,
            ),
            emotions=self.emotions,
            config=config.llm,
            max_query_chars=config.retrieval.max_query_chars,
        )

    def add_entry(self, content: str, **kwargs) -> JournalEntry:
        """Save an entry and queue its embedding in the background."""
        entry = self.store.add_entry(content, **kwargs)
        self.worker.submit(entry.id)
        return entry

    def update_entry(self, entry_id: str, content: str) -> JournalEntry:
        entry = self.store.update_entry(entry_id, content)
        self.worker.submit(entry.id, force=True)
        return entry

    def backfill_embeddings(self) -> int:
        """Queue every entry whose embedding is missing or outdated."""
        return self.worker.submit_many(self.worker.entry_embedder.pending_entry_ids())

    def search(
        self,
        query: str,
        limit: Optional[int] = None,
        include_archived: Optional[bool] = None,
    ) -> List[SearchResult]:
        return self.retriever.search(query, limit=limit, include_archived=include_archived)

    def check_safety(self, message: str) -> SafetyVerdict:
        return self.gate.classify(message, self.emotions.classify_emotions(message))

    def chat(
        self,
        conversation_id: str,
        message: str,
        current_entry_id: Optional[str] = None,
        on_delta: Optional[Callable[[str], None]] = None,
    ) -> ChatReply:
        return self.companion.respond(conversation_id, message, current_entry_id, on_delta)

    def stats(self) -> Dict[str, int]:
        return {
            "entries": self.store.count(),
            "entry_vectors": self.vector_store.entry_count(),
            "chunk_vectors": self.vector_store.chunk_count(),
        }

    def close(self) -> None:
        self.worker.stop()
        self.store.close()
