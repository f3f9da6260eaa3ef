from __future__ import annotations

from collections.abc import Sequence

"""Column lookup.

Every stage that needs a column by meaning (date, status, order id, ...) goes
through find_column, so the matching rule lives in one place:

1. an explicitly configured header name (normalized exact match)
2. the wanted name itself (normalized exact match)
3. the first header that contains every word of the wanted name
   ("date" -> "Order Date", "order id" -> "ORDER_ID #")
"""

__all__ = [
    "normalize_header",
    "find_column",
]


def normalize_header(header: object) -> str:
    """Trim whitespace and upper-case a header for comparison."""
    return str(header if header is not None else "").strip().upper()


def find_column(headers: Sequence[str], name: str, explicit: str | None = None) -> int | None:
    """Return the 0-based index of the column matching ``name``, or None.

    Args:
        headers: Header row as read from the sheet
        name: Logical column name, e.g. "DATE" or "ORDER ID"
        explicit: Configured header name that overrides the heuristic
    """
    normalized = [normalize_header(h) for h in headers]

    if explicit:
        wanted = normalize_header(explicit)
        return normalized.index(wanted) if wanted in normalized else None

    wanted = normalize_header(name)
    if wanted in normalized:
        return normalized.index(wanted)

    tokens = wanted.split()
    if not tokens:
        return None
    for idx, header in enumerate(normalized):
        if all(t in header for t in tokens):
            return idx
    return None
