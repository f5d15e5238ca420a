"""End-to-end hybrid retrieval over a real SQLite store."""

import logging

import numpy as np
import pytest

from conftest import UnavailableEmbedder
from journal_recall.capabilities import LazyModel, SentenceTransformerEmbedder
from journal_recall.chunking import SentenceChunker
from journal_recall.config import ChunkingConfig, RetrievalConfig
from journal_recall.errors import EmbeddingDimensionError, QueryTooLongError
from journal_recall.indexing import EntryEmbedder
from journal_recall.lexical import LexicalSearchAdapter
from journal_recall.retrieval import HybridRetriever
from journal_recall.vector_index import VectorSimilarityIndex


@pytest.fixture
def lexical_retriever(store):
    return HybridRetriever(store, LexicalSearchAdapter(store))


@pytest.fixture
def hybrid_retriever(corpus, store, vector_store, embedder):
    indexer = EntryEmbedder(store, vector_store, embedder, SentenceChunker(ChunkingConfig()))
    for entry_id in corpus:
        indexer.embed_entry(entry_id)
    return HybridRetriever(
        store,
        LexicalSearchAdapter(store),
        VectorSimilarityIndex(vector_store, store),
        embedder,
    )


def _ids(results):
    return [r.entry.id for r in results]


class TestLexicalOnly:
    """Retrieval with no query embedding."""

    def test_good_morning(self, corpus, lexical_retriever):
        ids = _ids(lexical_retriever.search("good morning"))
        assert ids[0] == "sunshine"
        assert "anxious" not in ids
        assert "archived" not in ids

    def test_single_term_matches_both_good_entries(self, corpus, lexical_retriever):
        results = lexical_retriever.search("good")
        assert set(_ids(results)) == {"good_day", "sunshine"}
        for result in results:
            assert result.fused.vector_rank is None
            assert result.fused.lexical_rank is not None

    def test_include_archived(self, corpus, lexical_retriever):
        ids = _ids(lexical_retriever.search("good morning", include_archived=True))
        assert set(ids) == {"sunshine", "archived"}

    def test_default_from_config(self, corpus, store):
        retriever = HybridRetriever(store, LexicalSearchAdapter(store), config=RetrievalConfig(include_archived=True))
        assert "archived" in _ids(retriever.search("morning"))

    def test_limit(self, corpus, lexical_retriever):
        assert len(lexical_retriever.search("good", limit=1)) == 1

    def test_blank_query(self, corpus, lexical_retriever):
        assert lexical_retriever.search("   ") == []

    def test_query_too_long(self, corpus, store):
        retriever = HybridRetriever(store, LexicalSearchAdapter(store), config=RetrievalConfig(max_query_chars=10))
        with pytest.raises(QueryTooLongError):
            retriever.search("this query is much too long")

    def test_score_is_rrf(self, corpus, lexical_retriever):
        result = lexical_retriever.search("sunshine")[0]
        assert result.score == pytest.approx(1.0 / 61.0)
        assert result.content == "Good morning sunshine"


class TestHybrid:
    """Both channels fused."""

    def test_good_morning_ranks_both_good_entries_above_anxious(self, hybrid_retriever):
        ids = _ids(hybrid_retriever.search("good morning"))
        assert ids[0] == "sunshine"
        assert ids.index("good_day") < ids.index("anxious")
        assert "archived" not in ids

    def test_overlap_gets_both_ranks(self, hybrid_retriever):
        top = hybrid_retriever.search("good morning")[0]
        assert top.fused.lexical_rank == 1
        assert top.fused.vector_rank == 1
        assert top.score == pytest.approx(2.0 / 61.0)

    def test_semantic_only_match(self, hybrid_retriever):
        """An entry with no lexical hit can still surface through its vector."""
        results = hybrid_retriever.search("tomorrow feeling")
        by_id = {r.entry.id: r for r in results}
        assert _ids(results)[0] == "anxious"
        assert by_id["good_day"].fused.lexical_rank is None

    def test_supplied_embedding_used(self, hybrid_retriever, embedder):
        vec = embedder.embed("good morning sunshine")
        calls = embedder.calls
        results = hybrid_retriever.search("good morning", query_embedding=vec)
        assert embedder.calls == calls
        assert _ids(results)[0] == "sunshine"

    def test_wrong_embedding_dimension(self, hybrid_retriever):
        with pytest.raises(EmbeddingDimensionError):
            hybrid_retriever.search("good", query_embedding=np.ones(3))

    def test_embedder_unavailable_falls_back(self, corpus, store, vector_store, caplog):
        retriever = HybridRetriever(
            store,
            LexicalSearchAdapter(store),
            VectorSimilarityIndex(vector_store, store),
            UnavailableEmbedder(),
        )
        with caplog.at_level(logging.WARNING, logger="journal_recall.retrieval"):
            results = retriever.search("good morning")
        assert _ids(results) == ["sunshine"]
        assert any("lexical-only" in r.getMessage() for r in caplog.records)

    def test_wrong_dimension_model_falls_back(self, corpus, store, vector_store):
        embedder = SentenceTransformerEmbedder(model_name="tiny-model")
        embedder._model = LazyModel(lambda: lambda texts: [[0.5] * 8 for _ in texts])
        retriever = HybridRetriever(
            store,
            LexicalSearchAdapter(store),
            VectorSimilarityIndex(vector_store, store),
            embedder,
        )
        assert _ids(retriever.search("good morning")) == ["sunshine"]


class TestRagContext:
    """Chat retrieval with a pinned entry."""

    def test_current_entry_first(self, corpus, lexical_retriever):
        results = lexical_retriever.get_rag_context("good", current_entry_id="anxious")
        assert _ids(results)[0] == "anxious"
        assert results[0].score == 1.0
        assert set(_ids(results)[1:]) == {"good_day", "sunshine"}

    def test_current_entry_not_duplicated(self, corpus, lexical_retriever):
        ids = _ids(lexical_retriever.get_rag_context("good", current_entry_id="sunshine"))
        assert ids.count("sunshine") == 1
        assert ids[0] == "sunshine"

    def test_limit_includes_pinned(self, corpus, lexical_retriever):
        results = lexical_retriever.get_rag_context("good", current_entry_id="anxious", limit=2)
        assert len(results) == 2

    def test_missing_current_entry_ignored(self, corpus, lexical_retriever):
        ids = _ids(lexical_retriever.get_rag_context("good", current_entry_id="ghost"))
        assert set(ids) == {"good_day", "sunshine"}

    def test_archived_never_included(self, corpus, lexical_retriever):
        assert "archived" not in _ids(lexical_retriever.get_rag_context("morning"))
