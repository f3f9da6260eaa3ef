from __future__ import annotations

import logging
from datetime import date, datetime

import pandas as pd

from order_transfer.errors import TransferValidationError
from order_transfer.models.sheet import FIRST_DATA_ROW, FilteredData, SheetData, SheetRef
from order_transfer.models.transfer import coerce_date
from order_transfer.sheets.provider import SheetProvider, sheet_operation

from .columns import find_column

logger = logging.getLogger(__name__)

"""Range-and-predicate row filter.

Selects the data rows of a sheet whose date cell falls inside an inclusive
[from, to] calendar range (``to`` through 23:59:59.999) and, optionally, whose
status cell equals a given status (trimmed, case-insensitive).

The returned ``source_row_numbers`` map each kept row back to its absolute row
in the unfiltered sheet (data index + 2); move mode deletes by these numbers.
"""

__all__ = [
    "parse_cell_date",
    "date_bounds",
    "get_filtered_data",
    "filter_sheet",
]

DateLike = date | datetime | str


def parse_cell_date(value: object) -> pd.Timestamp:
    """Parse a cell as a naive timestamp; NaT when blank or unparseable."""
    text = str(value).strip() if value is not None else ""
    if not text:
        return pd.NaT
    ts = pd.to_datetime(text, errors="coerce")
    if pd.isna(ts):
        return pd.NaT
    if ts.tzinfo is not None:
        # 壁時計時刻で比較 (タイムゾーンは落とす)
        ts = ts.tz_localize(None)
    return ts


def date_bounds(from_date: DateLike, to_date: DateLike) -> tuple[pd.Timestamp, pd.Timestamp]:
    """Inclusive timestamp bounds: from 00:00:00.000 to 23:59:59.999 of ``to_date``."""
    start = pd.Timestamp(coerce_date(from_date, "fromDate"))
    end = (
        pd.Timestamp(coerce_date(to_date, "toDate"))
        + pd.Timedelta(days=1)
        - pd.Timedelta(milliseconds=1)
    )
    return start, end


def get_filtered_data(
    sheet: SheetData,
    from_date: DateLike,
    to_date: DateLike,
    status: str | None = None,
    *,
    date_column: str | None = None,
    status_column: str | None = None,
) -> FilteredData:
    """Filter a sheet's data rows by date range and optional status.

    A reversed range (from > to) is not rejected; it simply matches nothing.

    Raises:
        TransferValidationError: no date column, or unparseable range bounds
    """
    start, end = date_bounds(from_date, to_date)

    date_idx = find_column(sheet.headers, "DATE", date_column)
    if date_idx is None:
        raise TransferValidationError(f"no date column found in sheet {sheet.ref}")

    if not sheet.rows:
        return FilteredData(headers=sheet.headers, rows=(), source_row_numbers=())

    df = pd.DataFrame(list(sheet.rows), columns=range(sheet.width))
    dates = pd.to_datetime(df[date_idx].map(parse_cell_date))
    mask = (dates >= start) & (dates <= end)

    if status is not None and status.strip():
        status_idx = find_column(sheet.headers, "STATUS", status_column)
        if status_idx is None:
            logger.debug("no status column in sheet %s; status filter %r ignored", sheet.ref, status)
        else:
            wanted = status.strip().upper()
            mask &= df[status_idx].str.strip().str.upper() == wanted

    kept = [int(i) for i in df.index[mask.to_numpy()]]
    return FilteredData(
        headers=sheet.headers,
        rows=tuple(sheet.rows[i] for i in kept),
        source_row_numbers=tuple(i + FIRST_DATA_ROW for i in kept),
    )


def filter_sheet(
    provider: SheetProvider,
    ref: SheetRef,
    from_date: DateLike,
    to_date: DateLike,
    status: str | None = None,
    *,
    date_column: str | None = None,
    status_column: str | None = None,
) -> FilteredData:
    """Read ``ref`` through the provider and filter it (see get_filtered_data)."""
    with sheet_operation("read", ref):
        sheet = provider.read_sheet(ref)
    filtered = get_filtered_data(
        sheet,
        from_date,
        to_date,
        status,
        date_column=date_column,
        status_column=status_column,
    )
    logger.debug("filtered sheet=%s kept=%d of %d", ref, filtered.row_count, sheet.row_count)
    return filtered
