from __future__ import annotations

import pytest

from order_transfer.errors import NotFoundError, SheetOperationError, TransferValidationError
from order_transfer.models.sheet import SheetRef
from order_transfer.sheets.memory import InMemorySheetProvider


@pytest.fixture()
def mem() -> InMemorySheetProvider:
    p = InMemorySheetProvider()
    p.add_sheet("orders", "Incoming", ["DATE", "ORDER ID"], [[f"2024-01-1{i}", f"ORD-{i}"] for i in range(5)])
    return p


REF = SheetRef("orders", "Incoming")


def test_read_sheet(mem):
    sheet = mem.read_sheet(REF)
    assert sheet.headers == ("DATE", "ORDER ID")
    assert sheet.row_count == 5
    assert mem.read_headers(REF) == ["DATE", "ORDER ID"]


def test_unknown_spreadsheet_and_sheet(mem):
    with pytest.raises(NotFoundError, match="spreadsheet not found: nope"):
        mem.read_sheet(SheetRef("nope", "Incoming"))
    with pytest.raises(NotFoundError, match="sheet not found: Other"):
        mem.read_sheet(SheetRef("orders", "Other"))


def test_append_returns_first_written_row_and_fits_width(mem):
    first = mem.append_rows(REF, [["2024-02-01"], ["2024-02-02", "ORD-x", "overflow"]])

    assert first == 7
    rows = mem.read_sheet(REF).rows
    assert rows[-2] == ("2024-02-01", "")
    assert rows[-1] == ("2024-02-02", "ORD-x")


def test_delete_in_descending_order_removes_exact_rows(mem):
    # 行 6 (ORD-4), 4 (ORD-2), 2 (ORD-0)
    mem.delete_rows(REF, [6, 4, 2])
    assert [r[1] for r in mem.read_sheet(REF).rows] == ["ORD-1", "ORD-3"]


def test_delete_in_ascending_order_shifts_rows(mem):
    # 昇順で渡すと後続行がずれる
    mem.delete_rows(REF, [2, 3])
    assert [r[1] for r in mem.read_sheet(REF).rows] == ["ORD-1", "ORD-3", "ORD-4"]


def test_delete_rejects_header_row(mem):
    with pytest.raises(TransferValidationError):
        mem.delete_rows(REF, [1])
    assert mem.read_sheet(REF).row_count == 5


def test_delete_rejects_out_of_range_without_partial_delete(mem):
    with pytest.raises(SheetOperationError, match="out of range"):
        mem.delete_rows(REF, [3, 99])
    assert mem.read_sheet(REF).row_count == 5


def test_delete_rejects_duplicate_row_numbers(mem):
    with pytest.raises(TransferValidationError):
        mem.delete_rows(REF, [3, 3])


def test_catalogue_operations(mem):
    info = mem.create_spreadsheet("Archive 2024", "January", ["DATE", "ORDER ID"])
    assert info.id.startswith("ss_")
    assert info.name == "Archive 2024"

    sheet = mem.create_sheet(info.id, "February", ["DATE", "ORDER ID"])
    assert sheet.spreadsheet_id == info.id

    ids = [s.id for s in mem.list_spreadsheets()]
    assert ids == ["orders", info.id]
    assert [s.name for s in mem.list_sheets(info.id)] == ["January", "February"]
    assert mem.read_headers(SheetRef(info.id, "February")) == ["DATE", "ORDER ID"]


def test_create_sheet_errors(mem):
    with pytest.raises(TransferValidationError, match="sheet already exists"):
        mem.create_sheet("orders", "Incoming", ["DATE"])
    with pytest.raises(NotFoundError):
        mem.create_sheet("nope", "New", ["DATE"])
    with pytest.raises(NotFoundError):
        mem.list_sheets("nope")
