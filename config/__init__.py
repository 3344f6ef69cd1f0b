"""
Configuration module for the Campus Assistant.

This module provides centralized configuration management including:
- Application settings (models, API keys, limits, backend location)
- Prompt templates and system instructions

All configurable values should be imported from this module to ensure
consistency across the application.
"""

from .settings import (
    # Paths
    BASE_DIR,
    DATA_DIR,

    # API Keys
    GOOGLE_API_KEY,

    # LLM Settings
    GEMINI_MODEL,
    EMBEDDING_MODEL,
    TEMPERATURE,
    MAX_TOKENS,
    TOP_P,
    TOP_K,
    MAX_RETRIES,
    RETRY_DELAY,
    TIMEOUT,

    # Orchestration
    MAX_ITERATIONS,
    TOOL_MAX_WORKERS,
    TRUSTED_LINK_DOMAINS,
    parse_domain_list,

    # School backend
    SCHOOL_API_BASE_URL,
    SCHOOL_API_TOKEN,

    # Vector search
    VECTOR_SEARCH_LIMIT,
    VECTOR_SEARCH_THRESHOLD,
    VECTOR_CACHE_TTL,

    # Langfuse Settings
    LANGFUSE_PUBLIC_KEY,
    LANGFUSE_SECRET_KEY,
    LANGFUSE_HOST,
    LANGFUSE_ENABLED,

    # Application Settings
    SCHOOL_NAME,
    SESSION_HISTORY_LIMIT,
    APP_TITLE,
    APP_SUBTITLE,

    # Data Loaders
    load_knowledge_base,

    # Logging
    LOG_LEVEL,
)

from .prompts import (
    # System Prompts
    FUNCTION_CALLING_INSTRUCTION,
    FALLBACK_INSTRUCTION,
    FALLBACK_PROMPT,
    OUT_OF_SCOPE_RESPONSE,

    # Templates
    USER_CONTEXT_TEMPLATE,
    NO_USER_CONTEXT,

    # Output safety
    LINK_DISCLOSURE,
    NO_ANSWER_MESSAGE,
    MODEL_UNAVAILABLE_MESSAGE,

    # Utilities
    format_prompt,
)

__all__ = [
    # Settings
    "BASE_DIR",
    "DATA_DIR",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
    "EMBEDDING_MODEL",
    "TEMPERATURE",
    "MAX_TOKENS",
    "TOP_P",
    "TOP_K",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "TIMEOUT",
    "MAX_ITERATIONS",
    "TOOL_MAX_WORKERS",
    "TRUSTED_LINK_DOMAINS",
    "parse_domain_list",
    "SCHOOL_API_BASE_URL",
    "SCHOOL_API_TOKEN",
    "VECTOR_SEARCH_LIMIT",
    "VECTOR_SEARCH_THRESHOLD",
    "VECTOR_CACHE_TTL",
    "LANGFUSE_PUBLIC_KEY",
    "LANGFUSE_SECRET_KEY",
    "LANGFUSE_HOST",
    "LANGFUSE_ENABLED",
    "SCHOOL_NAME",
    "SESSION_HISTORY_LIMIT",
    "APP_TITLE",
    "APP_SUBTITLE",
    "load_knowledge_base",
    "LOG_LEVEL",

    # Prompts
    "FUNCTION_CALLING_INSTRUCTION",
    "FALLBACK_INSTRUCTION",
    "FALLBACK_PROMPT",
    "OUT_OF_SCOPE_RESPONSE",
    "USER_CONTEXT_TEMPLATE",
    "NO_USER_CONTEXT",
    "LINK_DISCLOSURE",
    "NO_ANSWER_MESSAGE",
    "MODEL_UNAVAILABLE_MESSAGE",
    "format_prompt",
]
