"""
storefront.schemas — Casting and validation for the tenant views.

A schema knows which fields a view carries. cast() shapes arbitrary input
into that view (drops unknown fields, coerces values, fills defaults) and
never raises; validate() reports what is still wrong after casting.

Views:
    client_fetch: public storefront, returned by GET
    server_fetch: full stored record
    server_create: draft written on POST (no id yet)
    server_update: fields an owner may PATCH
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from storefront import dates
from storefront.models import (
    CLIENT_FIELDS,
    DEFAULT_TIER,
    IMMUTABLE_FIELDS,
    MANAGED_FIELDS,
    SERVER_FIELDS,
    STOREFRONT_FIELDS,
    TIMESTAMP_FIELDS,
    TenantTier,
)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_TIERS = ", ".join(tier.value for tier in TenantTier)


def _coerce_timestamp(value: Any) -> Any:
    if isinstance(value, datetime):
        return dates.iso(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float | Decimal):
        # Epoch milliseconds, as older clients send them.
        try:
            return dates.iso(datetime.fromtimestamp(float(value) / 1000, UTC))
        except (OverflowError, OSError, ValueError):
            return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return dates.iso(dates.parse_iso(text))
        except ValueError:
            return text
    return value


def _coerce(field: str, value: Any) -> Any:
    if field in TIMESTAMP_FIELDS:
        return _coerce_timestamp(value)
    if field in {"slug", "tier"}:
        return str(value).strip().lower()
    if field == "id":
        return str(value).strip()
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int | float | Decimal) and not isinstance(value, bool):
        return str(value)
    return value


def _is_timestamp(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        dates.parse_iso(value)
    except ValueError:
        return False
    return True


class TenantSchema:
    """A named set of tenant fields with required fields and defaults."""

    def __init__(
        self,
        fields: Iterable[str],
        *,
        required: Iterable[str] = (),
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        self.fields = tuple(fields)
        self.required = frozenset(required)
        self.defaults = dict(defaults or {})

    def cast(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Shape data into this view. Unknown fields are dropped."""
        result: dict[str, Any] = {}
        for field in self.fields:
            value = data.get(field)
            if value is not None:
                result[field] = _coerce(field, value)
        # Defaults run after coercion so they can derive from cast values.
        for field, default in self.defaults.items():
            if result.get(field) in (None, ""):
                result[field] = default(result) if callable(default) else default
        return result

    def validate(self, data: Mapping[str, Any]) -> list[str]:
        """Return the violations left after casting; empty when valid."""
        value = self.cast(data)
        errors = [
            f"{field} is required"
            for field in self.fields
            if field in self.required and value.get(field) in (None, "")
        ]

        slug = value.get("slug")
        if slug and not SLUG_PATTERN.match(slug):
            errors.append("slug must be lowercase letters, digits and single hyphens")

        for field in self.fields:
            if field in TIMESTAMP_FIELDS and field in value and not _is_timestamp(value[field]):
                errors.append(f"{field} must be an ISO 8601 timestamp")

        tier = value.get("tier")
        if tier and tier not in {t.value for t in TenantTier}:
            errors.append(f"tier must be one of: {_TIERS}")

        for field in STOREFRONT_FIELDS:
            if field in value and not isinstance(value[field], str):
                errors.append(f"{field} must be a string")

        created_at = value.get("createdAt")
        tier_until = value.get("tierUntil")
        if _is_timestamp(created_at) and _is_timestamp(tier_until):
            if dates.parse_iso(tier_until) < dates.parse_iso(created_at):
                errors.append("tierUntil must not be before createdAt")

        return errors

    def is_valid(self, data: Mapping[str, Any]) -> bool:
        return not self.validate(data)


client_fetch = TenantSchema(CLIENT_FIELDS, required=("id", "slug"))

server_fetch = TenantSchema(
    SERVER_FIELDS,
    required=("id", "slug", "createdAt", "tier", "tierUntil"),
)

server_create = TenantSchema(
    (field for field in SERVER_FIELDS if field != "id"),
    required=("slug", "createdAt", "tier", "tierUntil"),
    defaults={
        "tier": DEFAULT_TIER.value,
        "title": lambda tenant: tenant.get("slug", ""),
        "color": "teal",
    },
)

server_update = TenantSchema(
    field for field in SERVER_FIELDS if field not in IMMUTABLE_FIELDS | MANAGED_FIELDS
)
