from __future__ import annotations

import os
import re
import tempfile
import threading
from collections.abc import Sequence
from pathlib import Path

import openpyxl
import pandas as pd

from order_transfer.errors import NotFoundError, SheetOperationError, TransferValidationError
from order_transfer.models.sheet import (
    FIRST_DATA_ROW,
    HEADER_ROW,
    SheetData,
    SheetInfo,
    SheetRef,
    SpreadsheetInfo,
    fit_row,
    to_cell,
)
from order_transfer.sheets.provider import sheet_operation

"""Excel workbook sheet provider.

One ``<spreadsheet_id>.xlsx`` workbook per spreadsheet inside a directory.
Row 1 of every worksheet is the header row; data starts at row 2.

Sheet reads walk the worksheet with openpyxl so blank rows keep their row
numbers; the sheet catalogue is listed through pandas. Appends and deletes
edit the workbook with openpyxl and save it to a temporary file in the same
directory, which then replaces the workbook in one step.
Reads and writes share a provider-wide lock because each write rewrites the
whole file.
"""

__all__ = [
    "ExcelSheetProvider",
    "WORKBOOK_SUFFIX",
]

WORKBOOK_SUFFIX = ".xlsx"
_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def _spreadsheet_id_for(name: str) -> str:
    slug = _UNSAFE_ID_CHARS.sub("_", name.strip()).strip("._")
    if not slug:
        raise TransferValidationError(f"invalid spreadsheet name: {name!r}")
    return slug


def _write_value(cell: str) -> str | None:
    # 空文字は空セルとして書き込む
    return cell if cell != "" else None


def _save_atomic(workbook: openpyxl.Workbook, path: Path) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
    os.close(fd)
    try:
        workbook.save(tmp_name)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ExcelSheetProvider:
    """SheetProvider storing each spreadsheet as an .xlsx workbook."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, spreadsheet_id: str) -> Path:
        path = self.directory / f"{spreadsheet_id}{WORKBOOK_SUFFIX}"
        if not path.is_file():
            raise NotFoundError(f"spreadsheet not found: {spreadsheet_id}")
        return path

    def _worksheet(self, workbook: openpyxl.Workbook, ref: SheetRef):
        if ref.sheet_name not in workbook.sheetnames:
            raise NotFoundError(f"sheet not found: {ref.sheet_name} (spreadsheet {ref.spreadsheet_id})")
        return workbook[ref.sheet_name]

    def read_sheet(self, ref: SheetRef) -> SheetData:
        path = self._path(ref.spreadsheet_id)
        with self._lock, sheet_operation("read", ref):
            wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
            try:
                ws = self._worksheet(wb, ref)
                # 空行も保持する (行番号 = 削除対象の行番号)
                values = [
                    [to_cell(v) for v in row]
                    for row in ws.iter_rows(min_row=HEADER_ROW, values_only=True)
                ]
            finally:
                wb.close()
        if not values:
            return SheetData.from_values(ref, [], [])
        headers = values[0]
        # 末尾の空ヘッダ列は列数に含めない (append 側と同じ幅)
        while headers and headers[-1] == "":
            headers.pop()
        rows = values[1:]
        while rows and not any(rows[-1]):
            rows.pop()
        return SheetData.from_values(ref, headers, rows)

    def read_headers(self, ref: SheetRef) -> list[str]:
        return list(self.read_sheet(ref).headers)

    def append_rows(self, ref: SheetRef, rows: Sequence[Sequence[str]]) -> int:
        path = self._path(ref.spreadsheet_id)
        with self._lock, sheet_operation("append", ref):
            wb = openpyxl.load_workbook(path)
            try:
                ws = self._worksheet(wb, ref)
                width = len(self._header_cells(ws))
                first_row = max(ws.max_row, HEADER_ROW) + 1
                for row in rows:
                    ws.append([_write_value(c) for c in fit_row(row, width)])
                _save_atomic(wb, path)
            finally:
                wb.close()
        return first_row

    def delete_rows(self, ref: SheetRef, row_numbers: Sequence[int]) -> None:
        path = self._path(ref.spreadsheet_id)
        if len(set(row_numbers)) != len(row_numbers):
            raise TransferValidationError("duplicate row numbers in delete request")
        with self._lock, sheet_operation("delete", ref):
            wb = openpyxl.load_workbook(path)
            try:
                ws = self._worksheet(wb, ref)
                last_row = ws.max_row
                for n in row_numbers:
                    if n < FIRST_DATA_ROW:
                        raise TransferValidationError(f"row {n} is the header row or invalid; cannot delete")
                    if n > last_row:
                        raise SheetOperationError(
                            "delete", ref.spreadsheet_id, ref.sheet_name, f"row {n} out of range (last row {last_row})"
                        )
                for n in row_numbers:
                    ws.delete_rows(n)
                _save_atomic(wb, path)
            finally:
                wb.close()

    @staticmethod
    def _header_cells(ws) -> list[str]:
        header = [to_cell(c.value) for c in ws[HEADER_ROW]]
        while header and header[-1] == "":
            header.pop()
        return header

    def list_spreadsheets(self) -> list[SpreadsheetInfo]:
        if not self.directory.is_dir():
            return []
        return [
            SpreadsheetInfo(id=p.stem, name=p.stem)
            for p in sorted(self.directory.glob(f"*{WORKBOOK_SUFFIX}"))
            if not p.name.startswith("~$")  # Excel lock files
        ]

    def list_sheets(self, spreadsheet_id: str) -> list[SheetInfo]:
        path = self._path(spreadsheet_id)
        with self._lock, pd.ExcelFile(path) as xls:
            names = [str(n) for n in xls.sheet_names]
        return [SheetInfo(id=f"{spreadsheet_id}:{n}", name=n, spreadsheet_id=spreadsheet_id) for n in names]

    def create_spreadsheet(
        self, name: str, sheet_name: str, headers: Sequence[str]
    ) -> SpreadsheetInfo:
        spreadsheet_id = _spreadsheet_id_for(name)
        path = self.directory / f"{spreadsheet_id}{WORKBOOK_SUFFIX}"
        with self._lock:
            if path.exists():
                raise TransferValidationError(f"spreadsheet already exists: {spreadsheet_id}")
            self.directory.mkdir(parents=True, exist_ok=True)
            wb = openpyxl.Workbook()
            ws = wb.active
            ws.title = sheet_name
            ws.append(list(headers))
            _save_atomic(wb, path)
            wb.close()
        return SpreadsheetInfo(id=spreadsheet_id, name=name)

    def create_sheet(self, spreadsheet_id: str, sheet_name: str, headers: Sequence[str]) -> SheetInfo:
        path = self._path(spreadsheet_id)
        ref = SheetRef(spreadsheet_id, sheet_name)
        with self._lock, sheet_operation("create", ref):
            wb = openpyxl.load_workbook(path)
            try:
                if sheet_name in wb.sheetnames:
                    raise TransferValidationError(f"sheet already exists: {sheet_name}")
                ws = wb.create_sheet(sheet_name)
                ws.append(list(headers))
                _save_atomic(wb, path)
            finally:
                wb.close()
        return SheetInfo(id=f"{spreadsheet_id}:{sheet_name}", name=sheet_name, spreadsheet_id=spreadsheet_id)
