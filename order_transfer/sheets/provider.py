from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Protocol

from order_transfer.errors import SheetOperationError, TransferError
from order_transfer.models.sheet import SheetData, SheetInfo, SheetRef, SpreadsheetInfo

"""Sheet data provider contract.

The transfer pipeline only needs read / append / delete plus the header row.
The catalogue operations (list / create) back the spreadsheet pickers of the
operator UI and the CLI.

Implementations raise NotFoundError for an unknown spreadsheet or sheet and
SheetOperationError (operation + sheet) for any other backend failure.
"""

__all__ = [
    "SheetProvider",
    "sheet_operation",
]


class SheetProvider(Protocol):
    def read_sheet(self, ref: SheetRef) -> SheetData:
        """Read header row and all data rows."""
        ...

    def read_headers(self, ref: SheetRef) -> list[str]:
        ...

    def append_rows(self, ref: SheetRef, rows: Sequence[Sequence[str]]) -> int:
        """Append rows after the last data row; returns the first sheet row written."""
        ...

    def delete_rows(self, ref: SheetRef, row_numbers: Sequence[int]) -> None:
        """Delete sheet rows one by one, in exactly the order given."""
        ...

    def list_spreadsheets(self) -> list[SpreadsheetInfo]:
        ...

    def list_sheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        ...

    def create_spreadsheet(
        self, name: str, sheet_name: str, headers: Sequence[str]
    ) -> SpreadsheetInfo:
        ...

    def create_sheet(self, spreadsheet_id: str, sheet_name: str, headers: Sequence[str]) -> SheetInfo:
        ...


@contextmanager
def sheet_operation(operation: str, ref: SheetRef) -> Iterator[None]:
    """Wrap backend exceptions into SheetOperationError naming the operation.

    Pipeline errors (TransferError subclasses) pass through untouched.
    """
    try:
        yield
    except TransferError:
        raise
    except Exception as e:
        raise SheetOperationError(operation, ref.spreadsheet_id, ref.sheet_name, str(e)) from e
