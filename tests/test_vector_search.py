"""
Unit Tests for Vector Search

Tests ranking, context formatting and the TTL cache.
"""

from unittest.mock import Mock

import pytest

from config import load_knowledge_base
from services.vector_search_service import (
    NO_RESULTS_MESSAGE,
    CachedVectorSearchService,
    InMemoryDocumentStore,
    VectorSearchResult,
    VectorSearchService,
    cosine_similarity,
    format_context,
)
from tests import SAMPLE_KNOWLEDGE_BASE_PATH


def fixed_embedder(vector):
    """Embed every text as ``vector``."""
    return Mock(side_effect=lambda texts, task_type=None: [list(vector) for _ in texts])


@pytest.fixture
def documents():
    return load_knowledge_base(path=SAMPLE_KNOWLEDGE_BASE_PATH)


class TestCosineSimilarity:

    def test_identical(self):
        assert cosine_similarity([1, 2, 3], [1, 2, 3]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1, 0], [0, 1]) == 0.0

    def test_degenerate_vectors(self):
        assert cosine_similarity([], [1]) == 0.0
        assert cosine_similarity([0, 0], [1, 1]) == 0.0
        assert cosine_similarity([1, 2], [1, 2, 3]) == 0.0


class TestVectorSearchService:
    """Test search and formatting."""

    def test_results_ranked_and_thresholded(self, documents):
        embed = fixed_embedder([1.0, 0.0, 0.0])
        service = VectorSearchService(InMemoryDocumentStore(documents, embed), embed)

        results = service.search("When does enrollment open?", limit=5, threshold=0.5)

        assert [r.id for r in results] == ["doc-1", "doc-3"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].similarity == pytest.approx(0.6)
        embed.assert_called_once_with(["When does enrollment open?"], task_type="retrieval_query")

    def test_limit(self, documents):
        embed = fixed_embedder([1.0, 1.0, 0.0])
        service = VectorSearchService(InMemoryDocumentStore(documents, embed), embed)
        assert len(service.search("q", limit=1, threshold=0.0)) == 1

    def test_ties_keep_document_order(self, documents):
        embed = fixed_embedder([1.0, 1.0, 0.0])
        service = VectorSearchService(InMemoryDocumentStore(documents, embed), embed)

        results = service.search("q", limit=5, threshold=0.0)

        assert [r.id for r in results] == ["doc-3", "doc-1", "doc-2"]
        assert results[1].similarity == pytest.approx(results[2].similarity)
        assert all(isinstance(r.similarity, float) for r in results)

    @pytest.mark.parametrize("query_vector", [[1.0, 0.0], [0.0, 0.0, 0.0], []])
    def test_unusable_query_vector_matches_nothing(self, documents, query_vector):
        store = InMemoryDocumentStore(documents, fixed_embedder([1.0, 0.0, 0.0]))
        assert store.search_similar(query_vector, limit=5, threshold=-1.0) == []

    def test_empty_store(self):
        embed = fixed_embedder([1.0])
        store = InMemoryDocumentStore([], embed)
        assert store.search_similar([1.0], limit=5, threshold=0.0) == []
        embed.assert_not_called()

    def test_missing_embeddings_are_computed_once(self):
        embed = fixed_embedder([0.0, 1.0])
        store = InMemoryDocumentStore([{"id": "a", "content": "A"}, {"id": "b", "content": "B"}], embed)
        service = VectorSearchService(store, embed)

        service.search("first", threshold=0.0)
        service.search("second", threshold=0.0)

        document_calls = [c for c in embed.call_args_list if c.kwargs.get("task_type") == "retrieval_document"]
        assert len(document_calls) == 1
        assert document_calls[0].args[0] == ["A", "B"]

    def test_format_context(self):
        results = [
            VectorSearchResult(id="1", content="Tuition is due monthly.", similarity=0.91, metadata={"title": "Billing"}),
            VectorSearchResult(id="2", content="Enrollment opens in June.", similarity=0.8),
        ]
        context = format_context(results)

        assert context.startswith("Retrieved Information:")
        assert "[Document 1] (Similarity: 91.0%)" in context
        assert "Source: title: Billing" in context
        assert "\n\n---\n\n" in context

    def test_no_results_message(self, documents):
        embed = fixed_embedder([0.0, 0.0, 1.0])
        service = VectorSearchService(InMemoryDocumentStore(documents, embed), embed)
        assert service.search_and_format_context("unrelated") == NO_RESULTS_MESSAGE

    def test_multiple_queries_are_joined(self, documents):
        embed = fixed_embedder([1.0, 0.0, 0.0])
        service = VectorSearchService(InMemoryDocumentStore(documents, embed), embed)
        service.search_and_format_context(["enrollment", "dates"])
        assert embed.call_args_list[-1].args[0] == ["enrollment dates"]


class TestCachedVectorSearch:
    """Test the TTL cache."""

    @pytest.fixture
    def inner(self):
        inner = Mock(spec=VectorSearchService)
        inner.search.return_value = [VectorSearchResult(id="1", content="c", similarity=0.9)]
        return inner

    def test_repeated_query_hits_cache(self, inner):
        cached = CachedVectorSearchService(inner, ttl=60, clock=lambda: 1000.0)
        cached.search("fees")
        cached.search("fees")
        assert inner.search.call_count == 1

    def test_entries_expire(self, inner):
        now = [1000.0]
        cached = CachedVectorSearchService(inner, ttl=60, clock=lambda: now[0])
        cached.search("fees")
        now[0] += 61
        cached.search("fees")
        assert inner.search.call_count == 2

    def test_context_is_cached(self, inner):
        cached = CachedVectorSearchService(inner, ttl=60, clock=lambda: 0.0)
        first = cached.search_and_format_context("fees", limit=3)
        second = cached.search_and_format_context("fees", limit=3)
        assert first == second
        assert inner.search.call_count == 1

    def test_key_depends_on_limit_and_threshold(self, inner):
        cached = CachedVectorSearchService(inner)
        assert cached.generate_cache_key("q", 5, 0.7) != cached.generate_cache_key("q", 3, 0.7)
        assert cached.generate_cache_key("q", 5, 0.7).startswith("vector_search:")

    def test_invalidate_and_clear(self, inner):
        cached = CachedVectorSearchService(inner, ttl=60, clock=lambda: 0.0)
        cached.search("a")
        cached.invalidate_query("a")
        cached.search("a")
        cached.clear_all()
        cached.search("a")
        assert inner.search.call_count == 3

    def test_warm_up_counts_failures(self, inner):
        inner.search.side_effect = [[], RuntimeError("embed failed"), []]
        cached = CachedVectorSearchService(inner)
        assert cached.warm_up_cache(["a", "b", "c"]) == {"success_count": 2, "fail_count": 1}
