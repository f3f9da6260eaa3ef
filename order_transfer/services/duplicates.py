from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from order_transfer.models.sheet import FilteredData, SheetData
from order_transfer.models.transfer import DuplicateResolution

from .columns import find_column

logger = logging.getLogger(__name__)

"""Duplicate resolution against a destination's identity keys.

Identity key: the ORDER ID cell, or several cells (ORDER ID + TRACKING ID)
joined with a separator. Candidates are walked in order; an accepted row's key
joins the known set immediately, so repeats inside one batch are caught too.
Rows whose key cells are all blank are always accepted and never recorded.
"""

__all__ = [
    "identity_key",
    "locate_identity_columns",
    "existing_keys",
    "find_duplicates",
    "resolve_duplicates",
]


def identity_key(row: Sequence[str], key_columns: Sequence[int], separator: str = "_") -> str | None:
    """Build the identity key of ``row``; None when every key cell is blank."""
    parts = [row[i].strip() if i < len(row) else "" for i in key_columns]
    if not any(parts):
        return None
    return separator.join(parts)


def locate_identity_columns(headers: Sequence[str], identity_columns: Sequence[str]) -> list[int] | None:
    """Indices of the identity columns in ``headers``; None if any is missing."""
    indices: list[int] = []
    for name in identity_columns:
        idx = find_column(headers, name)
        if idx is None:
            return None
        indices.append(idx)
    return indices


def _key_set(rows: Iterable[Sequence[str]], key_columns: Sequence[int], separator: str) -> set[str]:
    keys: set[str] = set()
    for row in rows:
        key = identity_key(row, key_columns, separator)
        if key is not None:
            keys.add(key)
    return keys


def existing_keys(
    sheet: SheetData,
    identity_columns: Sequence[str] = ("ORDER ID",),
    separator: str = "_",
) -> set[str]:
    """Identity keys already present in ``sheet`` (empty when the columns are absent)."""
    key_columns = locate_identity_columns(sheet.headers, identity_columns)
    if key_columns is None:
        return set()
    return _key_set(sheet.rows, key_columns, separator)


def find_duplicates(
    candidate_rows: Sequence[Sequence[str]],
    existing_rows: Iterable[Sequence[str]],
    candidate_key_columns: Sequence[int] | None,
    existing_key_columns: Sequence[int] | None = None,
    separator: str = "_",
) -> DuplicateResolution:
    """Partition candidate row indices into unique / duplicate.

    Args:
        candidate_rows: Rows about to be written
        existing_rows: Rows already in the destination
        candidate_key_columns: Identity column indices in the candidate rows;
            None means the identity column could not be located
        existing_key_columns: Identity column indices in the existing rows
            (defaults to candidate_key_columns); None means no usable keys
        separator: Joiner for multi-column keys

    Returns:
        DuplicateResolution whose index lists preserve candidate order
    """
    if candidate_key_columns is None:
        logger.warning("identity column not found; treating all %d rows as unique", len(candidate_rows))
        return DuplicateResolution(unique_rows=list(range(len(candidate_rows))), duplicate_rows=[])

    if existing_key_columns is None:
        existing_key_columns = candidate_key_columns
    seen = _key_set(existing_rows, existing_key_columns, separator)

    unique: list[int] = []
    duplicates: list[int] = []
    for idx, row in enumerate(candidate_rows):
        key = identity_key(row, candidate_key_columns, separator)
        if key is None:
            unique.append(idx)
        elif key in seen:
            duplicates.append(idx)
        else:
            unique.append(idx)
            seen.add(key)
    return DuplicateResolution(unique_rows=unique, duplicate_rows=duplicates)


def resolve_duplicates(
    candidates: FilteredData,
    existing: SheetData,
    identity_columns: Sequence[str] = ("ORDER ID",),
    separator: str = "_",
) -> DuplicateResolution:
    """Resolve duplicates between filtered source rows and a destination sheet.

    The identity columns are located separately in the source and destination
    header rows, so the two sheets may order their columns differently.
    """
    candidate_cols = locate_identity_columns(candidates.headers, identity_columns)
    if candidate_cols is None:
        return find_duplicates(candidates.rows, (), None)

    existing_cols = locate_identity_columns(existing.headers, identity_columns)
    if existing_cols is None:
        logger.warning(
            "identity columns %s not found in destination %s; checking within the batch only",
            list(identity_columns),
            existing.ref,
        )
        return find_duplicates(candidates.rows, (), candidate_cols, candidate_cols, separator)

    return find_duplicates(candidates.rows, existing.rows, candidate_cols, existing_cols, separator)
