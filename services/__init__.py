"""
Business Logic Services Module

This module contains the service layer of the Campus Assistant:
- Chat service: Main coordinator for one chatbot question
- Vector search service: Knowledge base retrieval with a TTL cache

Services wire the core orchestration to the backend and the model.
"""

from .chat_service import (
    AnswerStatus,
    ChatResponse,
    ChatService,
    build_default_search_service,
    map_user_to_context,
    process_user_message,
)

from .vector_search_service import (
    CachedVectorSearchService,
    InMemoryDocumentStore,
    VectorSearchResult,
    VectorSearchService,
    cosine_similarity,
    format_context,
)

__all__ = [
    # Chat Service
    "AnswerStatus",
    "ChatResponse",
    "ChatService",
    "build_default_search_service",
    "map_user_to_context",
    "process_user_message",

    # Vector Search Service
    "CachedVectorSearchService",
    "InMemoryDocumentStore",
    "VectorSearchResult",
    "VectorSearchService",
    "cosine_similarity",
    "format_context",
]
