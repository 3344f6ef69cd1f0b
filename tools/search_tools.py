"""
Knowledge Base Search Tool

Function calling handler for the general search over school policies,
FAQs and procedures. Available to every role.
"""

import logging
from typing import Any, Callable, Dict

from config import VECTOR_SEARCH_LIMIT
from core.capabilities import ToolName
from .school_tools import int_arg, required_str

logger = logging.getLogger(__name__)

MAX_SEARCH_LIMIT = 10


def build_search_handlers(search_service: Any) -> Dict[ToolName, Callable[[Dict[str, Any]], Any]]:
    """
    Bind the knowledge base search to its tool name.

    Args:
        search_service: Object with ``search_and_format_context(query, limit)``
            (VectorSearchService or CachedVectorSearchService)
    """

    def search_vector(args):
        query = required_str(args, "query")
        limit = min(int_arg(args, "limit", VECTOR_SEARCH_LIMIT), MAX_SEARCH_LIMIT)
        return search_service.search_and_format_context(query, limit=limit)

    return {ToolName.SEARCH_VECTOR: search_vector}
