"""
fleetdesk: API client for the fleet, vehicle-rental and workshop backend.
"""

from .auth import RefreshError, refresh_tokens
from .client import ApiClient
from .storage import FileTokenStore, MemoryTokenStore, TokenStore, TokenStoreError
from .types import ApiError, ApiResponse, TokenPair

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiResponse",
    "FileTokenStore",
    "MemoryTokenStore",
    "RefreshError",
    "TokenPair",
    "TokenStore",
    "TokenStoreError",
    "refresh_tokens",
]
__version__ = "0.1.0"
