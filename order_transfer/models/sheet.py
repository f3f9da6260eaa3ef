from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

"""Sheet domain models.

A sheet is a header row (sheet row 1) followed by data rows. Data rows are
addressed by their absolute sheet row number: the first data row is row 2.
SheetData pairs the header schema with the rows and fixes column-count drift
once, at read time, so later stages can index cells positionally.
"""

__all__ = [
    "HEADER_ROW",
    "FIRST_DATA_ROW",
    "SheetRef",
    "SheetData",
    "FilteredData",
    "SpreadsheetInfo",
    "SheetInfo",
    "to_cell",
    "fit_row",
]

HEADER_ROW = 1
FIRST_DATA_ROW = 2


def to_cell(value: Any) -> str:
    """Convert a raw cell value to its string form (None / NaN -> "")."""
    if value is None:
        return ""
    if isinstance(value, float) and value != value:  # NaN
        return ""
    return str(value)


def fit_row(row: Sequence[Any], width: int) -> list[str]:
    """Pad with empty cells on the right or truncate trailing cells to ``width``."""
    cells = [to_cell(v) for v in row[:width]]
    if len(cells) < width:
        cells.extend([""] * (width - len(cells)))
    return cells


@dataclass(frozen=True)
class SheetRef:
    """(spreadsheet id, sheet name) pair identifying one sheet."""
    spreadsheet_id: str
    sheet_name: str

    def __str__(self) -> str:
        return f"{self.spreadsheet_id}/{self.sheet_name}"


@dataclass(frozen=True)
class SheetData:
    """Header schema plus data rows of one sheet.

    Attributes:
        ref: Which sheet the data was read from
        headers: Header row as written in the sheet (original casing)
        rows: Data rows, every row exactly ``len(headers)`` string cells
    """
    ref: SheetRef
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...] = field(default_factory=tuple)

    @classmethod
    def from_values(
        cls,
        ref: SheetRef,
        headers: Iterable[Any],
        rows: Iterable[Sequence[Any]] = (),
    ) -> SheetData:
        """Build a SheetData, stringifying cells and fitting rows to the header width."""
        header_tuple = tuple(to_cell(h) for h in headers)
        width = len(header_tuple)
        fitted = tuple(tuple(fit_row(r, width)) for r in rows)
        return cls(ref=ref, headers=header_tuple, rows=fitted)

    @property
    def width(self) -> int:
        return len(self.headers)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def next_empty_row(self) -> int:
        """Sheet row number an append would start at."""
        return FIRST_DATA_ROW + len(self.rows)

    @staticmethod
    def row_number(index: int) -> int:
        """Absolute sheet row number of the data row at 0-based ``index``."""
        return index + FIRST_DATA_ROW


@dataclass(frozen=True)
class FilteredData:
    """Rows selected from a source sheet.

    ``source_row_numbers[i]`` is the absolute sheet row of ``rows[i]`` in the
    unfiltered sheet; move mode deletes by these numbers.
    """
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    source_row_numbers: tuple[int, ...]

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class SpreadsheetInfo:
    id: str
    name: str


@dataclass(frozen=True)
class SheetInfo:
    id: str
    name: str
    spreadsheet_id: str
