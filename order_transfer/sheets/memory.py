from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from order_transfer.errors import NotFoundError, SheetOperationError, TransferValidationError
from order_transfer.models.sheet import (
    FIRST_DATA_ROW,
    SheetData,
    SheetInfo,
    SheetRef,
    SpreadsheetInfo,
    fit_row,
    to_cell,
)

"""Volatile in-memory sheet provider.

Holds every spreadsheet in process memory; nothing survives a restart. All
operations take one re-entrant lock, so concurrent transfers touching different
sheets see consistent reads and appends.
"""

__all__ = [
    "InMemorySheetProvider",
]


@dataclass
class _Sheet:
    id: str
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)


@dataclass
class _Spreadsheet:
    id: str
    name: str
    sheets: dict[str, _Sheet] = field(default_factory=dict)


class InMemorySheetProvider:
    """SheetProvider backed by plain lists."""

    def __init__(self) -> None:
        self._spreadsheets: dict[str, _Spreadsheet] = {}
        self._lock = threading.RLock()

    def add_sheet(
        self,
        spreadsheet_id: str,
        sheet_name: str,
        headers: Iterable[object],
        rows: Iterable[Sequence[object]] = (),
        spreadsheet_name: str | None = None,
    ) -> SheetRef:
        """Seed a sheet (creating the spreadsheet if needed). Existing sheets are replaced."""
        with self._lock:
            book = self._spreadsheets.get(spreadsheet_id)
            if book is None:
                book = _Spreadsheet(id=spreadsheet_id, name=spreadsheet_name or spreadsheet_id)
                self._spreadsheets[spreadsheet_id] = book
            header_list = [to_cell(h) for h in headers]
            book.sheets[sheet_name] = _Sheet(
                id=f"sh_{uuid.uuid4().hex[:8]}",
                headers=header_list,
                rows=[fit_row(r, len(header_list)) for r in rows],
            )
        return SheetRef(spreadsheet_id, sheet_name)

    def _sheet(self, ref: SheetRef) -> _Sheet:
        book = self._spreadsheets.get(ref.spreadsheet_id)
        if book is None:
            raise NotFoundError(f"spreadsheet not found: {ref.spreadsheet_id}")
        sheet = book.sheets.get(ref.sheet_name)
        if sheet is None:
            raise NotFoundError(f"sheet not found: {ref.sheet_name} (spreadsheet {ref.spreadsheet_id})")
        return sheet

    def read_sheet(self, ref: SheetRef) -> SheetData:
        with self._lock:
            sheet = self._sheet(ref)
            return SheetData.from_values(ref, sheet.headers, sheet.rows)

    def read_headers(self, ref: SheetRef) -> list[str]:
        with self._lock:
            return list(self._sheet(ref).headers)

    def append_rows(self, ref: SheetRef, rows: Sequence[Sequence[str]]) -> int:
        with self._lock:
            sheet = self._sheet(ref)
            first_row = FIRST_DATA_ROW + len(sheet.rows)
            width = len(sheet.headers)
            sheet.rows.extend(fit_row(r, width) for r in rows)
            return first_row

    def delete_rows(self, ref: SheetRef, row_numbers: Sequence[int]) -> None:
        with self._lock:
            sheet = self._sheet(ref)
            last_row = FIRST_DATA_ROW + len(sheet.rows) - 1
            if len(set(row_numbers)) != len(row_numbers):
                raise TransferValidationError("duplicate row numbers in delete request")
            for n in row_numbers:
                if n < FIRST_DATA_ROW:
                    raise TransferValidationError(f"row {n} is the header row or invalid; cannot delete")
                if n > last_row:
                    raise SheetOperationError(
                        "delete", ref.spreadsheet_id, ref.sheet_name, f"row {n} out of range (last row {last_row})"
                    )
            for n in row_numbers:
                # 行番号は削除前レイアウト基準 (呼び出し側が降順で渡す)
                del sheet.rows[n - FIRST_DATA_ROW]

    def list_spreadsheets(self) -> list[SpreadsheetInfo]:
        with self._lock:
            return [SpreadsheetInfo(id=b.id, name=b.name) for b in self._spreadsheets.values()]

    def list_sheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        with self._lock:
            book = self._spreadsheets.get(spreadsheet_id)
            if book is None:
                raise NotFoundError(f"spreadsheet not found: {spreadsheet_id}")
            return [
                SheetInfo(id=s.id, name=name, spreadsheet_id=spreadsheet_id)
                for name, s in book.sheets.items()
            ]

    def create_spreadsheet(
        self, name: str, sheet_name: str, headers: Sequence[str]
    ) -> SpreadsheetInfo:
        spreadsheet_id = f"ss_{uuid.uuid4().hex[:8]}"
        self.add_sheet(spreadsheet_id, sheet_name, headers, spreadsheet_name=name)
        return SpreadsheetInfo(id=spreadsheet_id, name=name)

    def create_sheet(self, spreadsheet_id: str, sheet_name: str, headers: Sequence[str]) -> SheetInfo:
        with self._lock:
            book = self._spreadsheets.get(spreadsheet_id)
            if book is None:
                raise NotFoundError(f"spreadsheet not found: {spreadsheet_id}")
            if sheet_name in book.sheets:
                raise TransferValidationError(f"sheet already exists: {sheet_name}")
            self.add_sheet(spreadsheet_id, sheet_name, headers)
            return SheetInfo(id=book.sheets[sheet_name].id, name=sheet_name, spreadsheet_id=spreadsheet_id)
