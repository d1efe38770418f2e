"""
Clock and timestamp helpers.

Every timestamp stored by barflow (shift windows, ledger entries, sales)
is a naive datetime in UTC, so shift-window comparisons against
credit_transactions.occurred_at never mix offsets.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_ago(days: int) -> datetime:
    """Start of a trailing reporting window of `days` days ending now."""
    return utcnow() - timedelta(days=days)


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    Read a query-string timestamp such as a ledger range bound.

    Blank input gives None. Values with an offset or a trailing Z are
    shifted to UTC; values without one are taken as UTC already.
    Raises ValueError on anything else.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(value: datetime | None) -> str | None:
    """Second-precision ISO-8601 with a Z suffix, as the API returns it."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"
