from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

import jsonschema
import pandas as pd
from jsonschema.exceptions import ValidationError

from ..errors import TransferValidationError
from .sheet import SheetRef

"""Transfer request / record / result models.

TransferRequest is the immutable input of one transfer. TransferRecord is the
progress snapshot owned by the progress tracker. TransferResult is the single
tagged success/failure value returned by the executor.

The ``from_payload`` / ``to_payload`` helpers translate the camelCase JSON
shapes used at the HTTP boundary.
"""

__all__ = [
    "TransferMode",
    "DuplicateHandling",
    "TransferStatus",
    "TERMINAL_STATUSES",
    "TransferRequest",
    "TransferStats",
    "TransferRecord",
    "HeaderMismatch",
    "DuplicateResolution",
    "TransferResult",
    "REQUEST_SCHEMA",
    "coerce_date",
]


class TransferMode(Enum):
    COPY = "copy"
    MOVE = "move"


class DuplicateHandling(Enum):
    """Duplicate policy. Only SKIP is implemented; the executor rejects the others."""
    SKIP = "skip"
    UPDATE = "update"
    ADD_ALL = "add_all"


class TransferStatus(Enum):
    """Transfer lifecycle: pending → processing → (completed | failed)."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TransferStatus.COMPLETED, TransferStatus.FAILED})


REQUEST_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": [
        "sourceSpreadsheetId",
        "sourceSheetName",
        "destinationSpreadsheetId",
        "destinationSheetName",
        "fromDate",
        "toDate",
    ],
    "properties": {
        "sourceSpreadsheetId": {"type": "string", "minLength": 1},
        "sourceSheetName": {"type": "string", "minLength": 1},
        "destinationSpreadsheetId": {"type": "string", "minLength": 1},
        "destinationSheetName": {"type": "string", "minLength": 1},
        "fromDate": {"type": "string", "minLength": 1},
        "toDate": {"type": "string", "minLength": 1},
        "status": {"type": ["string", "null"]},
        "mode": {"enum": [m.value for m in TransferMode]},
        "duplicateHandling": {"enum": [d.value for d in DuplicateHandling]},
    },
}


def coerce_date(value: date | datetime | str, field_name: str = "date") -> date:
    """Turn a date / datetime / date string into a calendar date.

    Raises:
        TransferValidationError: value cannot be parsed as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        ts = pd.Timestamp(str(value).strip())
    except (ValueError, TypeError) as e:
        raise TransferValidationError(f"invalid {field_name}: {value!r}") from e
    if pd.isna(ts):
        raise TransferValidationError(f"invalid {field_name}: {value!r}")
    return ts.date()


@dataclass(frozen=True)
class TransferRequest:
    """Immutable transfer input.

    The date range is inclusive on both ends; ``to_date`` covers the whole day.
    """
    source: SheetRef
    destination: SheetRef
    from_date: date
    to_date: date
    status: str | None = None
    mode: TransferMode = TransferMode.MOVE
    duplicate_handling: DuplicateHandling = DuplicateHandling.SKIP

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> TransferRequest:
        """Parse the JSON body accepted at the HTTP boundary.

        Raises:
            TransferValidationError: missing / malformed fields
        """
        try:
            jsonschema.validate(payload, REQUEST_SCHEMA)
        except ValidationError as e:
            raise TransferValidationError(f"invalid transfer request: {e.message}") from e

        status = payload.get("status")
        if isinstance(status, str) and not status.strip():
            status = None
        return cls(
            source=SheetRef(payload["sourceSpreadsheetId"], payload["sourceSheetName"]),
            destination=SheetRef(
                payload["destinationSpreadsheetId"], payload["destinationSheetName"]
            ),
            from_date=coerce_date(payload["fromDate"], "fromDate"),
            to_date=coerce_date(payload["toDate"], "toDate"),
            status=status,
            mode=TransferMode(payload.get("mode", TransferMode.MOVE.value)),
            duplicate_handling=DuplicateHandling(
                payload.get("duplicateHandling", DuplicateHandling.SKIP.value)
            ),
        )


@dataclass(frozen=True)
class TransferStats:
    total_rows: int = 0
    processed_rows: int = 0
    duplicate_rows: int = 0
    errors: int = 0


@dataclass(frozen=True)
class TransferRecord:
    """Progress snapshot of one transfer, keyed by transfer id."""
    transfer_id: str
    status: TransferStatus
    progress: int  # 0-100
    stats: TransferStats
    created_at: datetime
    updated_at: datetime
    message: str = ""
    error: str | None = None
    finished_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status.value,
            "progress": self.progress,
            "message": self.message,
            "stats": {
                "totalRows": self.stats.total_rows,
                "processedRows": self.stats.processed_rows,
                "duplicates": self.stats.duplicate_rows,
                "errors": self.stats.errors,
            },
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class HeaderMismatch:
    """Destination header report against the required header set."""
    expected: list[str]
    missing: list[str]
    extra: list[str]

    def to_payload(self) -> dict[str, list[str]]:
        return {"expected": list(self.expected), "missing": list(self.missing), "extra": list(self.extra)}


@dataclass(frozen=True)
class DuplicateResolution:
    """Partition of candidate row indices into accepted / duplicate."""
    unique_rows: list[int]
    duplicate_rows: list[int]


@dataclass(frozen=True)
class TransferResult:
    """Outcome of one executed transfer (success or failure, never raised)."""
    success: bool
    transfer_id: str
    status: TransferStatus
    message: str
    mode: TransferMode = TransferMode.MOVE
    transferred_rows: int = 0
    duplicates_found: int = 0
    deleted_rows: int = 0
    warnings: tuple[str, ...] = field(default_factory=tuple)
    header_mismatch: HeaderMismatch | None = None
    error_kind: str | None = None
    total_chunks: int = 0
    avg_chunk_seconds: float = 0.0
    p95_chunk_seconds: float = 0.0
    elapsed_seconds: float = 0.0

    def to_payload(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message, "transferId": self.transfer_id}
