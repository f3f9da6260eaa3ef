from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest
from jsonschema.exceptions import ValidationError

from order_transfer.logging.error_log import ErrorLogBuffer, ErrorRecord

"""Error log JSON Lines contract test."""

ERROR_LOG_SCHEMA = {
    "type": "object",
    "required": ["timestamp", "transfer_id", "spreadsheet", "sheet", "row", "error_type", "message"],
    "additionalProperties": False,
    "properties": {
        "timestamp": {"type": "string", "pattern": "^\\d{4}-\\d{2}-\\d{2}T\\d{2}:\\d{2}:\\d{2}(\\.\\d+)?Z$"},
        "transfer_id": {"type": "string"},
        "spreadsheet": {"type": "string"},
        "sheet": {"type": "string"},
        "row": {"type": "integer", "minimum": -1},
        "error_type": {"type": "string", "pattern": "^[A-Z][A-Z0-9_]*$"},
        "message": {"type": "string"},
    },
}


def test_error_log_lines_match_schema(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("transfer_1", "orders", "Incoming", 7, "DELETE_FAILURE", "permission denied"))
    buf.append(ErrorRecord.create("transfer_1", "archive", "Processed", -1, "WRITE_FAILURE", "quota"))

    path = buf.flush()

    for line in path.read_text(encoding="utf-8").splitlines():
        jsonschema.validate(json.loads(line), ERROR_LOG_SCHEMA)


def test_error_log_schema_rejects_extra_key():
    record = json.loads(ErrorRecord.create("t", "s", "S", 1, "WRITE_FAILURE", "x").to_json_line())
    record["extra"] = "not allowed"
    with pytest.raises(ValidationError):
        jsonschema.validate(record, ERROR_LOG_SCHEMA)
