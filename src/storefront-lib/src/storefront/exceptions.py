"""
storefront.exceptions — Failures raised by the tenant store and session verifier.

Handlers map these to HTTP responses; boto3 and PyJWT errors never leak
past the library boundary.
"""


class StorefrontError(Exception):
    """Base class for every error raised by the storefront library."""


class TenantStoreError(StorefrontError):
    """
    Raised when a TenantStore operation fails.

    Carries an HTTP-shaped outcome so callers can answer with it verbatim.

    Attributes:
        status:      HTTP status code describing the failure (404, 409, 502...).
        status_text: Short human-readable reason, safe to return to clients.
    """

    def __init__(self, status: int, status_text: str) -> None:
        self.status = status
        self.status_text = status_text
        super().__init__(f"{status} {status_text}")


class InvalidSessionError(StorefrontError):
    """Raised when a session token is missing, expired, or fails verification."""
