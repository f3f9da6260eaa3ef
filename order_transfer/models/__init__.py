"""Domain models for the order sheet transfer pipeline.

This package contains the sheet, transfer and configuration models used
throughout the application.
"""

from .config_models import CANONICAL_HEADERS, TransferSettings
from .sheet import FilteredData, SheetData, SheetRef
from .transfer import (
    DuplicateHandling,
    DuplicateResolution,
    HeaderMismatch,
    TransferMode,
    TransferRecord,
    TransferRequest,
    TransferResult,
    TransferStats,
    TransferStatus,
)

__all__ = [
    # Configuration models
    "CANONICAL_HEADERS",
    "TransferSettings",
    # Sheet models
    "SheetRef",
    "SheetData",
    "FilteredData",
    # Transfer models
    "TransferMode",
    "DuplicateHandling",
    "TransferStatus",
    "TransferRequest",
    "TransferStats",
    "TransferRecord",
    "HeaderMismatch",
    "DuplicateResolution",
    "TransferResult",
]
