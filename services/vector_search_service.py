"""
Vector Search Service - Knowledge Base Retrieval

Semantic search over school documents (policies, FAQs, procedures):
- Query embedding through the model boundary
- Cosine similarity ranking with a similarity threshold
- Context formatting for the model
- A TTL cache in front of the search for repeated questions
"""

import hashlib
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from config import VECTOR_SEARCH_LIMIT, VECTOR_SEARCH_THRESHOLD, VECTOR_CACHE_TTL, load_knowledge_base

logger = logging.getLogger(__name__)

# embed_fn(texts, task_type=...) -> one vector per text
EmbedFn = Callable[..., List[List[float]]]

NO_RESULTS_MESSAGE = "No relevant information found in the knowledge base."


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class VectorSearchResult:
    """
    A ranked knowledge base passage.

    Attributes:
        id: Document identifier
        content: Passage text
        metadata: Source information (title, url, updated date...)
        similarity: Cosine similarity to the query (0.0 - 1.0)
    """
    id: str
    content: str
    similarity: float
    metadata: Dict[str, Any] = field(default_factory=dict)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either is empty or zero."""
    va, vb = np.asarray(a, dtype=float), np.asarray(b, dtype=float)
    if va.size == 0 or va.shape != vb.shape:
        return 0.0
    norm_a, norm_b = np.linalg.norm(va), np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


# ============================================================================
# DOCUMENT STORE
# ============================================================================

class InMemoryDocumentStore:
    """
    Documents with embeddings, held in memory.

    Documents without a precomputed ``embedding`` are embedded on first
    search with the retrieval_document task type.
    """

    def __init__(self, documents: List[Dict[str, Any]], embed_fn: EmbedFn):
        self._documents = [dict(d) for d in documents]
        self._embed_fn = embed_fn
        self._embeddings: Optional[np.ndarray] = None
        self._lock = threading.Lock()

    @classmethod
    def from_knowledge_base(cls, embed_fn: EmbedFn) -> "InMemoryDocumentStore":
        return cls(load_knowledge_base(), embed_fn)

    def __len__(self) -> int:
        return len(self._documents)

    def _ensure_embeddings(self) -> Optional[np.ndarray]:
        """Embed missing documents and return the (documents x dims) matrix."""
        with self._lock:
            if self._embeddings is not None or not self._documents:
                return self._embeddings

            missing = [d for d in self._documents if not d.get("embedding")]
            if missing:
                vectors = self._embed_fn([d["content"] for d in missing], task_type="retrieval_document")
                for document, vector in zip(missing, vectors):
                    document["embedding"] = list(vector)
                logger.info(f"🧮 Embedded {len(missing)} knowledge base document(s)")

            self._embeddings = np.array([d["embedding"] for d in self._documents], dtype=float)
            return self._embeddings

    def search_similar(self, query_embedding: Sequence[float], limit: int, threshold: float) -> List[VectorSearchResult]:
        embeddings = self._ensure_embeddings()
        if embeddings is None:
            return []

        query = np.asarray(query_embedding, dtype=float)
        if embeddings.ndim != 2 or query.shape != (embeddings.shape[1],):
            logger.warning(f"⚠️ Query embedding has {query.size} dims, documents have {embeddings.shape[-1]}")
            return []

        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return []

        # zero-norm documents score 0
        doc_norms = np.linalg.norm(embeddings, axis=1)
        similarities = np.dot(embeddings, query) / (np.where(doc_norms == 0, 1, doc_norms) * query_norm)

        results = []
        for index in np.argsort(-similarities, kind="stable"):
            similarity = float(similarities[index])
            if similarity < threshold or len(results) >= limit:
                break
            document = self._documents[index]
            results.append(VectorSearchResult(
                id=str(document["id"]),
                content=document["content"],
                similarity=similarity,
                metadata=document.get("metadata") or {},
            ))
        return results


# ============================================================================
# VECTOR SEARCH SERVICE
# ============================================================================

class VectorSearchService:
    """Embeds queries and ranks knowledge base passages."""

    def __init__(self, store: InMemoryDocumentStore, embed_fn: EmbedFn):
        self.store = store
        self.embed_fn = embed_fn

    def search(
        self,
        query: str,
        limit: int = VECTOR_SEARCH_LIMIT,
        threshold: float = VECTOR_SEARCH_THRESHOLD,
    ) -> List[VectorSearchResult]:
        """
        Search for relevant documents using vector similarity.

        Args:
            query: Natural-language query
            limit: Maximum number of results
            threshold: Minimum cosine similarity

        Returns:
            Results ordered by similarity, best first

        Raises:
            ModelUnavailableError: If the query could not be embedded
        """
        logger.info(f"🔎 Vector search query=\"{query[:60]}\" limit={limit} threshold={threshold}")

        embeddings = self.embed_fn([query], task_type="retrieval_query")
        results = self.store.search_similar(embeddings[0], limit, threshold)

        logger.info(f"✅ Vector search completed, found {len(results)} results")
        return results

    def search_and_format_context(
        self,
        query: Union[str, Sequence[str]],
        limit: int = VECTOR_SEARCH_LIMIT,
        threshold: float = VECTOR_SEARCH_THRESHOLD,
    ) -> str:
        """
        Search and format the results as a context string for the model.

        Args:
            query: Query string, or several strings searched together

        Returns:
            "Retrieved Information" block, or a no-results sentence
        """
        combined = query if isinstance(query, str) else " ".join(query)
        results = self.search(combined, limit, threshold)
        return format_context(results)


def format_context(results: List[VectorSearchResult]) -> str:
    if not results:
        return NO_RESULTS_MESSAGE

    blocks = []
    for index, result in enumerate(results, start=1):
        header = f"[Document {index}] (Similarity: {result.similarity * 100:.1f}%)"
        if result.metadata:
            source = ", ".join(f"{k}: {v}" for k, v in result.metadata.items())
            header = f"{header}\nSource: {source}"
        blocks.append(f"{header}\n{result.content}")

    return "Retrieved Information:\n\n" + "\n\n---\n\n".join(blocks)


# ============================================================================
# CACHED VECTOR SEARCH
# ============================================================================

class CachedVectorSearchService:
    """
    TTL cache in front of VectorSearchService.

    Keys are md5 hashes of query, limit and threshold. The cache is shared
    between requests and guarded by a lock.
    """

    CACHE_PREFIX = "vector_search:"

    def __init__(
        self,
        vector_search: VectorSearchService,
        ttl: int = VECTOR_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.vector_search = vector_search
        self.ttl = ttl
        self._clock = clock
        self._cache: Dict[str, Tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def generate_cache_key(self, query: str, limit: int, threshold: float) -> str:
        digest = hashlib.md5(f"{query}:{limit}:{threshold}".encode("utf-8")).hexdigest()
        return f"{self.CACHE_PREFIX}{digest}"

    def _get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._cache[key]
                return None
            return value

    def _set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = (self._clock() + self.ttl, value)

    def search(
        self,
        query: str,
        limit: int = VECTOR_SEARCH_LIMIT,
        threshold: float = VECTOR_SEARCH_THRESHOLD,
    ) -> List[VectorSearchResult]:
        key = self.generate_cache_key(query, limit, threshold)
        cached = self._get(key)
        if cached is not None:
            logger.debug(f"💾 Vector search cache hit for \"{query[:40]}\"")
            return cached

        results = self.vector_search.search(query, limit, threshold)
        self._set(key, results)
        return results

    def search_and_format_context(
        self,
        query: str,
        limit: int = VECTOR_SEARCH_LIMIT,
        threshold: float = VECTOR_SEARCH_THRESHOLD,
    ) -> str:
        key = f"{self.generate_cache_key(query, limit, threshold)}:context"
        cached = self._get(key)
        if cached is not None:
            return cached

        context = format_context(self.search(query, limit, threshold))
        self._set(key, context)
        return context

    def invalidate_query(
        self,
        query: str,
        limit: int = VECTOR_SEARCH_LIMIT,
        threshold: float = VECTOR_SEARCH_THRESHOLD,
    ) -> None:
        key = self.generate_cache_key(query, limit, threshold)
        with self._lock:
            self._cache.pop(key, None)
            self._cache.pop(f"{key}:context", None)

    def clear_all(self) -> None:
        with self._lock:
            for key in [k for k in self._cache if k.startswith(self.CACHE_PREFIX)]:
                del self._cache[key]
        logger.info("🧹 Vector search cache cleared")

    def warm_up_cache(
        self,
        queries: List[str],
        limit: int = VECTOR_SEARCH_LIMIT,
        threshold: float = VECTOR_SEARCH_THRESHOLD,
    ) -> Dict[str, int]:
        """
        Pre-run a list of queries.

        Returns:
            {"success_count": n, "fail_count": m}
        """
        success_count = 0
        fail_count = 0
        for query in queries:
            try:
                self.search(query, limit, threshold)
                success_count += 1
            except Exception as e:
                logger.error(f"❌ Failed to warm up cache for query \"{query[:40]}\": {e}")
                fail_count += 1

        logger.info(f"✅ Cache warmed up: {success_count} successful, {fail_count} failed")
        return {"success_count": success_count, "fail_count": fail_count}
