from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the sheet transfer pipeline.

These are the typed settings handed to the executor and CLI. The YAML loader in
order_transfer/config/loader.py validates the raw file and builds them.
"""

__all__ = [
    "CANONICAL_HEADERS",
    "DEFAULT_CHUNK_SIZE",
    "TransferSettings",
]

# 表示順を保持 (照合は順不同)
CANONICAL_HEADERS: tuple[str, ...] = (
    "DATE",
    "ORDER ID",
    "TRACKING ID",
    "CUSTOMER NAME",
    "PHONE",
    "CITY",
    "COD",
    "REMARKS ON STATUS",
    "AGENT NAME",
    "STATUS",
    "EXPORT",
    "DELIVERY TYPE",
    "RETURN REASON",
    "REMARKS IF RETURNED",
)

DEFAULT_CHUNK_SIZE = 100


@dataclass(frozen=True)
class TransferSettings:
    """Runtime settings for transfers.

    identity_columns holds one name (ORDER ID) for single-key duplicate
    detection, or several (ORDER ID, TRACKING ID) joined by identity_separator.
    date_column / status_column pin the lookup to an explicit header; when
    None the "date" / "status" substring heuristic is used.
    """
    workbook_directory: str = "./workbooks"
    chunk_size: int = DEFAULT_CHUNK_SIZE
    identity_columns: tuple[str, ...] = ("ORDER ID",)
    identity_separator: str = "_"
    required_headers: tuple[str, ...] = field(default=CANONICAL_HEADERS)
    date_column: str | None = None
    status_column: str | None = None
    validate_headers: bool = True
    error_log_directory: str = "./logs"
    max_concurrent_transfers: int = 4

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if not self.identity_columns:
            raise ValueError("identity_columns must not be empty")
        if self.max_concurrent_transfers < 1:
            raise ValueError("max_concurrent_transfers must be >= 1")

    @classmethod
    def defaults(cls) -> TransferSettings:
        return cls()
