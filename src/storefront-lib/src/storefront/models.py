"""
storefront.models — Tenant vocabulary and DynamoDB key layout.

Table: storefront-tenants (single-table design)
    PK: TENANT#{id}   SK: METADATA  : tenant record (server view)
    PK: SLUG#{slug}   SK: TENANT    : slug pointer, holds the owning id

The slug pointer is written in the same transaction as the record, so a
slug can never point at two tenants.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum

# Grace period granted to every new storefront.
TRIAL_PERIOD: timedelta = timedelta(days=7)


class TenantTier(StrEnum):
    FREE = "free"
    COMMERCIAL = "commercial"
    PREMIUM = "premium"


DEFAULT_TIER: TenantTier = TenantTier.COMMERCIAL


# ---------------------------------------------------------------------------
# Field vocabularies (camelCase, as exchanged with clients)
# ---------------------------------------------------------------------------

STOREFRONT_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "phone",
    "logo",
    "banner",
    "color",
    "instagram",
    "facebook",
    "keywords",
)

# Client view: what the public storefront is allowed to see.
CLIENT_FIELDS: tuple[str, ...] = ("id", "slug", "tier", *STOREFRONT_FIELDS)

# Server view: the full record.
SERVER_FIELDS: tuple[str, ...] = (*CLIENT_FIELDS, "createdAt", "tierUntil")

IMMUTABLE_FIELDS: frozenset[str] = frozenset({"id", "slug", "createdAt"})

# Only the platform changes these; owners cannot patch them.
MANAGED_FIELDS: frozenset[str] = frozenset({"tier", "tierUntil"})

TIMESTAMP_FIELDS: frozenset[str] = frozenset({"createdAt", "tierUntil"})


# ---------------------------------------------------------------------------
# DynamoDB keys
# ---------------------------------------------------------------------------


def tenant_key(tenant_id: str) -> dict[str, str]:
    return {"PK": f"TENANT#{tenant_id}", "SK": "METADATA"}


def slug_key(slug: str) -> dict[str, str]:
    return {"PK": f"SLUG#{slug}", "SK": "TENANT"}


# ---------------------------------------------------------------------------
# SessionIdentity: what a verified session token resolves to
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionIdentity:
    """
    Identity carried by a verified session token.

    uid is the Cognito `sub` of the account, which is also the id of the
    tenant that account owns.
    """

    uid: str
    email: str | None = None
    expires_at: int | None = None  # Unix epoch seconds (JWT exp claim)
