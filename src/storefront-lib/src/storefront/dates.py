"""
storefront.dates — UTC clock and ISO 8601 helpers shared by handlers and schemas.
"""

from __future__ import annotations

from datetime import UTC, datetime

from storefront.models import TRIAL_PERIOD


def now_utc() -> datetime:
    return datetime.now(UTC)


def iso(dt: datetime) -> str:
    """Render a datetime as second-precision ISO 8601 UTC with a Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_iso(text: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC.

    Raises ValueError when the text is not a timestamp.
    """
    parsed = datetime.fromisoformat(text.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def one_week_from(moment: datetime) -> datetime:
    return moment + TRIAL_PERIOD
