"""
Function Calling Tools Module

This module contains the handlers behind every function the model can
call. Handlers are bound per request to the backend client of the current
user and to the shared knowledge base search.

Each handler is designed to:
- Accept the parsed arguments dict sent by the model
- Validate enumerated values against the domain enums
- Return the collaborator's result as-is
- Raise on failure (the dispatcher turns errors into text)
"""

from typing import Any, Callable, Dict, Mapping, Optional

from clients.school_api_client import SchoolApiClient
from core.capabilities import ToolName

from .school_tools import build_school_handlers
from .search_tools import build_search_handlers


def get_tool_registry(
    client: SchoolApiClient,
    search_service: Any,
    user_context: Optional[Mapping[str, Any]] = None,
) -> Dict[ToolName, Callable[[Dict[str, Any]], Any]]:
    """
    Get the complete handler table for one request.

    Returns:
        Dictionary mapping every ToolName to its handler
    """
    handlers = build_school_handlers(client, user_context)
    handlers.update(build_search_handlers(search_service))

    missing = [t.value for t in ToolName if t not in handlers]
    if missing:
        raise RuntimeError(f"Tools without handlers: {missing}")
    return handlers


__all__ = [
    "build_school_handlers",
    "build_search_handlers",
    "get_tool_registry",
]
