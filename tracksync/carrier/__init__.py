"""
Correios carrier integration.
Authentication, token caching and tracking lookups.
"""

from tracksync.carrier.auth_client import AuthClient
from tracksync.carrier.token_cache import TokenCache
from tracksync.carrier.tracking_client import TrackingClient

__all__ = ["AuthClient", "TokenCache", "TrackingClient"]
