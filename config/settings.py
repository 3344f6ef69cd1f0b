"""
Application settings and configuration values.

This module centralizes all configuration values including:
- File paths
- API keys and credentials
- Model parameters
- Orchestration limits and link allow-list
- Knowledge base loading

Environment variables are loaded via python-dotenv.
"""

import os
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# ============================================================================
# PATHS
# ============================================================================

BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"

# ============================================================================
# LLM CONFIGURATION
# ============================================================================

# Gemini API Settings
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")

if not GOOGLE_API_KEY:
    logger.warning(
        "⚠️  GOOGLE_API_KEY not found in environment variables. "
        "Model calls will fail until it is set in your .env file."
    )

# Model Parameters
TEMPERATURE = float(os.getenv("TEMPERATURE", "0.3"))
MAX_TOKENS = int(os.getenv("MAX_TOKENS", "8192"))
TOP_P = float(os.getenv("TOP_P", "0.95"))
TOP_K = int(os.getenv("TOP_K", "40"))

# Retry and Timeout Settings
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY = float(os.getenv("RETRY_DELAY", "1.0"))  # seconds
TIMEOUT = int(os.getenv("TIMEOUT", "30"))  # seconds

# ============================================================================
# ORCHESTRATION
# ============================================================================

MAX_ITERATIONS = int(os.getenv("MAX_ITERATIONS", "5"))
TOOL_MAX_WORKERS = int(os.getenv("TOOL_MAX_WORKERS", "1"))

if MAX_ITERATIONS < 1:
    raise ValueError(f"MAX_ITERATIONS must be a positive integer, got {MAX_ITERATIONS}")


def parse_domain_list(raw: Optional[str]) -> List[str]:
    """
    Split a comma separated domain list into normalized host names.

    Args:
        raw: String such as "mmdc.mcl.edu.ph, mcl.edu.ph"

    Returns:
        Lower-cased domains without scheme, port or surrounding dots
    """
    if not raw:
        return []

    domains = []
    for item in raw.split(","):
        domain = item.strip().lower()
        if "://" in domain:
            domain = domain.split("://", 1)[1]
        domain = domain.split("/", 1)[0].split(":", 1)[0].strip(".")
        if domain and domain not in domains:
            domains.append(domain)
    return domains


# Links outside these domains are stripped from answers
TRUSTED_LINK_DOMAINS = parse_domain_list(
    os.getenv("TRUSTED_LINK_DOMAINS", "mmdc.mcl.edu.ph,mcl.edu.ph")
)

# ============================================================================
# SCHOOL BACKEND
# ============================================================================

SCHOOL_API_BASE_URL = os.getenv("SCHOOL_API_BASE_URL", "http://localhost:3000/api")
SCHOOL_API_TOKEN = os.getenv("SCHOOL_API_TOKEN")

# ============================================================================
# VECTOR SEARCH
# ============================================================================

VECTOR_SEARCH_LIMIT = int(os.getenv("VECTOR_SEARCH_LIMIT", "5"))
VECTOR_SEARCH_THRESHOLD = float(os.getenv("VECTOR_SEARCH_THRESHOLD", "0.7"))
VECTOR_CACHE_TTL = int(os.getenv("VECTOR_CACHE_TTL", "3600"))  # seconds

# ============================================================================
# LANGFUSE OBSERVABILITY
# ============================================================================

LANGFUSE_PUBLIC_KEY = os.getenv("LANGFUSE_PUBLIC_KEY")
LANGFUSE_SECRET_KEY = os.getenv("LANGFUSE_SECRET_KEY")
LANGFUSE_HOST = os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")

# Enable/disable Langfuse tracing
LANGFUSE_ENABLED = os.getenv("LANGFUSE_ENABLED", "true").lower() == "true"

if LANGFUSE_ENABLED and (not LANGFUSE_PUBLIC_KEY or not LANGFUSE_SECRET_KEY):
    logger.warning("⚠️  Langfuse is enabled but keys are missing. Tracing will be disabled.")
    LANGFUSE_ENABLED = False

# ============================================================================
# APPLICATION SETTINGS
# ============================================================================

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "Mapúa Malayan Digital College (MMDC)")
SESSION_HISTORY_LIMIT = int(os.getenv("SESSION_HISTORY_LIMIT", "20"))

# UI Settings
APP_TITLE = "MMDC Campus Assistant 🎓"
APP_SUBTITLE = "Ask about enrollment, billing, courses and your learning modules"

# ============================================================================
# KNOWLEDGE BASE MANAGEMENT
# ============================================================================

# Cache for knowledge base documents to avoid repeated file reads
_KNOWLEDGE_CACHE: Optional[List[Dict]] = None


def load_knowledge_base(force_reload: bool = False, path: Optional[Path] = None) -> List[Dict]:
    """
    Load knowledge base documents from JSON with caching.

    Each document needs an ``id`` and ``content``; ``metadata`` and a
    precomputed ``embedding`` are optional.

    Args:
        force_reload: If True, bypass cache and reload from disk
        path: Override for the knowledge base file location

    Returns:
        List of document dictionaries

    Raises:
        FileNotFoundError: If the knowledge base file doesn't exist
        ValueError: If JSON is malformed
    """
    global _KNOWLEDGE_CACHE

    if _KNOWLEDGE_CACHE is not None and not force_reload and path is None:
        return _KNOWLEDGE_CACHE

    kb_file = path or DATA_DIR / "knowledge_base.json"

    if not kb_file.exists():
        raise FileNotFoundError(
            f"Knowledge base file not found at {kb_file}. "
            f"Please create data/knowledge_base.json with school documents."
        )

    try:
        with open(kb_file, "r", encoding="utf-8") as f:
            documents = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {kb_file.name}: {e}")

    if not isinstance(documents, list):
        raise ValueError(f"{kb_file.name} must contain a list of document objects")

    required_fields = ["id", "content"]
    for idx, document in enumerate(documents):
        missing = [f for f in required_fields if f not in document]
        if missing:
            raise ValueError(
                f"Document at index {idx} is missing required fields: {missing}"
            )

    logger.info(f"✅ Loaded {len(documents)} knowledge base documents from {kb_file}")

    if path is None:
        _KNOWLEDGE_CACHE = documents
    return documents


# ============================================================================
# DEVELOPMENT / DEBUG SETTINGS
# ============================================================================

DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

if DEBUG:
    logger.info("=" * 60)
    logger.info("🔧 Campus Assistant Configuration Loaded")
    logger.info(f"Model: {GEMINI_MODEL}")
    logger.info(f"Max iterations: {MAX_ITERATIONS}")
    logger.info(f"Trusted domains: {', '.join(TRUSTED_LINK_DOMAINS)}")
    logger.info(f"Langfuse: {'✅ Enabled' if LANGFUSE_ENABLED else '❌ Disabled'}")
    logger.info("=" * 60)
