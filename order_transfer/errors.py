from __future__ import annotations

"""Error taxonomy for the sheet transfer pipeline.

- NotFound: spreadsheet / sheet does not exist
- Validation: bad request fields, missing date column, unsupported options
- SheetOperation: a provider call (read / append / delete) failed
- WriteFailure: a chunk append failed mid-transfer (fatal)
- DeleteFailure: post-write deletion in move mode failed (non-fatal)
"""

__all__ = [
    "TransferError",
    "NotFoundError",
    "TransferValidationError",
    "SheetOperationError",
    "WriteFailureError",
    "DeleteFailureError",
    "InvalidTransitionError",
]


class TransferError(Exception):
    """Base class for expected pipeline failures surfaced to the caller."""

    kind = "TRANSFER_ERROR"


class NotFoundError(TransferError):
    kind = "NOT_FOUND"


class TransferValidationError(TransferError):
    kind = "VALIDATION"


class SheetOperationError(TransferError):
    """A sheet provider call failed; carries the operation and the sheet it targeted."""

    kind = "SHEET_OPERATION"

    def __init__(self, operation: str, spreadsheet_id: str, sheet_name: str, detail: str) -> None:
        self.operation = operation
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self.detail = detail
        super().__init__(f"{operation} failed for '{spreadsheet_id}/{sheet_name}': {detail}")


class WriteFailureError(TransferError):
    kind = "WRITE_FAILURE"

    def __init__(self, chunk_number: int, detail: str) -> None:
        self.chunk_number = chunk_number
        super().__init__(f"Failed to transfer chunk {chunk_number}: {detail}")


class DeleteFailureError(TransferError):
    kind = "DELETE_FAILURE"


class InvalidTransitionError(ValueError):
    """Raised when a terminal transfer record is asked to change state."""
