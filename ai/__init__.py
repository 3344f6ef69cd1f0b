"""
AI Infrastructure Module

This module provides the model boundary for the Campus Assistant:
- Gemini function-calling generation with error handling and retry logic
- Text embeddings for the knowledge base search
- Langfuse observability integration and token usage tracking

All LLM calls should go through this module to ensure consistent
observability, error handling, and configuration.
"""

from .llm_service import (
    # Main LLM functions
    generate_with_tools,
    embed_texts,

    # Data structures
    ModelResponse,

    # Utility functions
    to_gemini_contents,
    parse_response,
    validate_model_available,
    health_check,
)

__all__ = [
    "generate_with_tools",
    "embed_texts",
    "ModelResponse",
    "to_gemini_contents",
    "parse_response",
    "validate_model_available",
    "health_check",
]
