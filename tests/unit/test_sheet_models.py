from __future__ import annotations

from order_transfer.models.sheet import SheetData, SheetRef, fit_row, to_cell

REF = SheetRef("orders", "Incoming")


def test_to_cell():
    assert to_cell(None) == ""
    assert to_cell(float("nan")) == ""
    assert to_cell(1500) == "1500"
    assert to_cell("ORD-1") == "ORD-1"


def test_fit_row_pads_and_truncates():
    assert fit_row(["a"], 3) == ["a", "", ""]
    assert fit_row(["a", "b", "c", "d"], 2) == ["a", "b"]
    assert fit_row([None, 7], 2) == ["", "7"]
    assert fit_row([], 0) == []


def test_sheet_data_fits_rows_to_header_width():
    sheet = SheetData.from_values(REF, ["DATE", "ORDER ID", "STATUS"], [["2024-01-10"], ["2024-01-11", "b", "x", "extra"]])

    assert sheet.width == 3
    assert sheet.rows == (("2024-01-10", "", ""), ("2024-01-11", "b", "x"))
    assert sheet.row_count == 2


def test_row_numbers():
    sheet = SheetData.from_values(REF, ["DATE"], [["a"], ["b"]])

    assert SheetData.row_number(0) == 2
    assert sheet.next_empty_row == 4
    assert SheetData.from_values(REF, ["DATE"]).next_empty_row == 2


def test_sheet_ref_str():
    assert str(REF) == "orders/Incoming"
