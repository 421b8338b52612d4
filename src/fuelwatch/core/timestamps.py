"""Parsing of the timestamp strings retailer feeds publish.

Feeds disagree on format. Observed variants:

- ISO-8601, with or without offset (``2024-01-02T09:00:00Z``)
- UK day-first with time (``02/01/2024 09:00:00``)
- UK day-first date only (``02/01/2024``)

Anything else degrades to ``None`` ("unknown") rather than raising.
Naive values are taken to be UTC so that mixed feeds can be compared.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

_DAY_FIRST_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
)


def parse_timestamp(value: object) -> datetime | None:
    """Parse a feed timestamp into an aware UTC datetime, or None."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    parsed: datetime | None = None
    if "/" in text:
        for fmt in _DAY_FIRST_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    else:
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            parsed = None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def latest_timestamp(values: Iterable[str | None]) -> str | None:
    """Return the original string of the latest parseable timestamp.

    Unparseable and missing values are ignored. Ties keep the first seen.
    """
    best_raw: str | None = None
    best: datetime | None = None
    for raw in values:
        parsed = parse_timestamp(raw)
        if parsed is None:
            continue
        if best is None or parsed > best:
            best = parsed
            best_raw = raw
    return best_raw


def utc_now_iso() -> str:
    """Current wall-clock time as ISO-8601 UTC with a ``Z`` suffix."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
