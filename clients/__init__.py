"""
Utility Clients Module

Low-level clients for external services. These hold no business logic.

Clients:
- School API Client: Read endpoints of the school backend over httpx
"""

from .school_api_client import (
    PUBLIC_STATUS_MESSAGES,
    SchoolApiClient,
)

__all__ = [
    "PUBLIC_STATUS_MESSAGES",
    "SchoolApiClient",
]
