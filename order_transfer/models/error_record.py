from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

Structured record of a transfer failure (chunk write, source delete, read),
written as one JSON Lines entry. ``row`` is the sheet row number the failure
concerns, or -1 when it applies to the whole sheet / chunk.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        transfer_id: Transfer the failure belongs to
        spreadsheet: Spreadsheet id of the sheet involved
        sheet: Sheet name
        row: Sheet row number. Use -1 when the row is unknown / not applicable
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human-readable description
    """
    timestamp: str  # ISO8601 UTC
    transfer_id: str
    spreadsheet: str
    sheet: str
    row: int  # 不明な場合 -1
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        transfer_id: str,
        spreadsheet: str,
        sheet: str,
        row: int,
        error_type: str,
        message: str,
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            transfer_id=transfer_id,
            spreadsheet=spreadsheet,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
