"""
storefront — Tenant store and session verification for the storefront API.

The ONLY way handlers reach tenant records and session identities.
"""

from storefront.client import TenantStore
from storefront.exceptions import InvalidSessionError, StorefrontError, TenantStoreError
from storefront.models import SessionIdentity, TenantTier
from storefront.session import SessionVerifier

__all__ = [
    "InvalidSessionError",
    "SessionIdentity",
    "SessionVerifier",
    "StorefrontError",
    "TenantStore",
    "TenantStoreError",
    "TenantTier",
]
