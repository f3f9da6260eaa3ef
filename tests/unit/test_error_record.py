from __future__ import annotations

import json

from order_transfer.models.error_record import ErrorRecord

"""Unit tests for ErrorRecord model."""


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        transfer_id="transfer_abc",
        spreadsheet="orders",
        sheet="Incoming",
        row=12,
        error_type="DELETE_FAILURE",
        message="permission denied",
    )
    data = json.loads(rec.to_json_line())
    assert data["transfer_id"] == "transfer_abc"
    assert data["spreadsheet"] == "orders"
    assert data["sheet"] == "Incoming"
    assert data["row"] == 12
    assert data["error_type"] == "DELETE_FAILURE"
    assert data["message"] == "permission denied"
    assert "timestamp" in data and data["timestamp"].endswith("Z")
    assert set(data.keys()) == {"timestamp", "transfer_id", "spreadsheet", "sheet", "row", "error_type", "message"}


def test_error_record_row_minus_one_support():
    """row=-1 marks a failure that applies to the whole chunk / sheet."""
    rec = ErrorRecord.create("transfer_abc", "archive", "Processed", -1, "WRITE_FAILURE", "quota exceeded")

    assert rec.row == -1
    assert json.loads(rec.to_json_line())["row"] == -1


def test_error_record_keeps_non_ascii():
    rec = ErrorRecord.create("t", "受注", "シート1", 3, "DELETE_FAILURE", "削除失敗")
    line = rec.to_json_line()
    assert "削除失敗" in line
    assert json.loads(line)["sheet"] == "シート1"
