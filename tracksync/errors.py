"""
Error types raised by the carrier clients and the sync engine.

Every error carries the carrier's message and, when a response was received,
the HTTP status code. Nothing here is retried automatically except the single
forced re-authentication after a rejected bearer token.
"""

from typing import Optional


class CarrierError(Exception):
    """Base class for all carrier-related failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"[{self.status_code}] {self.message}"
        return self.message


class AuthError(CarrierError):
    """Authentication could not produce a usable token."""


class MissingCredentialError(AuthError):
    """No carrier credential is configured for the tenant."""

    def __init__(self, tenant_id: Optional[str] = None):
        message = "No carrier credential configured"
        if tenant_id:
            message = f"{message} for tenant {tenant_id}"
        super().__init__(message)
        self.tenant_id = tenant_id


class InvalidCredentialsError(AuthError):
    """Carrier rejected the identifier / access code pair."""


class AuthenticationFailedError(AuthError):
    """Authentication failed for a reason not covered by a specific status."""


class InvalidRequestError(CarrierError):
    """Carrier rejected the request parameters (HTTP 400)."""


class RateLimitedError(CarrierError):
    """Carrier asked us to slow down (HTTP 429)."""


class CarrierServerError(CarrierError):
    """Carrier-side failure (HTTP 5xx)."""


class TokenRejectedError(CarrierError):
    """Bearer token is invalid or expired; refresh and retry once."""


class TrackingFailedError(CarrierError):
    """Tracking lookup failed for a reason not covered by a specific status."""


class MalformedResponseError(CarrierError):
    """Carrier response body did not match the expected shape."""


class TransportError(CarrierError):
    """No response was received (connection error, timeout)."""


class BatchTooLargeError(CarrierError, ValueError):
    """More tracking codes than the carrier accepts in one request."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Maximum of {limit} tracking codes allowed per request, got {size}")
        self.size = size
        self.limit = limit
