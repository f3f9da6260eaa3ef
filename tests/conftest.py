# Shared pytest fixtures
from __future__ import annotations
import tempfile
from collections.abc import Sequence
from pathlib import Path

import pandas as pd
import pytest

from order_transfer.models.config_models import CANONICAL_HEADERS, TransferSettings
from order_transfer.models.sheet import SheetRef
from order_transfer.sheets.memory import InMemorySheetProvider


def order_row(
    order_id: str,
    date: str,
    status: str = "pending",
    tracking_id: str | None = None,
    customer: str = "Ayesha Khan",
) -> list[str]:
    """One data row laid out in CANONICAL_HEADERS order."""
    return [
        date,
        order_id,
        tracking_id if tracking_id is not None else f"TRK-{order_id}",
        customer,
        "03001234567",
        "Karachi",
        "1500",
        "",
        "Bilal",
        status,
        "",
        "standard",
        "",
        "",
    ]


class RecordingProvider(InMemorySheetProvider):
    """In-memory provider that records append / delete calls and can fail on demand.

    Args:
        fail_append_on_call: 1-based append call number that raises
        fail_delete: every delete call raises
    """

    def __init__(self, fail_append_on_call: int | None = None, fail_delete: bool = False) -> None:
        super().__init__()
        self.fail_append_on_call = fail_append_on_call
        self.fail_delete = fail_delete
        self.append_calls: list[list[list[str]]] = []
        self.delete_calls: list[list[int]] = []

    def append_rows(self, ref: SheetRef, rows: Sequence[Sequence[str]]) -> int:
        self.append_calls.append([list(r) for r in rows])
        if self.fail_append_on_call == len(self.append_calls):
            raise RuntimeError("quota exceeded")
        return super().append_rows(ref, rows)

    def delete_rows(self, ref: SheetRef, row_numbers: Sequence[int]) -> None:
        self.delete_calls.append(list(row_numbers))
        if self.fail_delete:
            raise RuntimeError("permission denied")
        super().delete_rows(ref, row_numbers)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "workbooks").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        # CLI の load_dotenv が書き込んだ値も teardown で消す
        monkeypatch.setenv("ORDER_TRANSFER_CONFIG", "unset")
        monkeypatch.delenv("ORDER_TRANSFER_CONFIG")
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """workbook_directory: ./workbooks
chunk_size: 100
identity_columns: [ORDER ID]
validate_headers: true
error_log_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "transfer.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def headers() -> list[str]:
    return list(CANONICAL_HEADERS)


@pytest.fixture()
def settings(tmp_path: Path) -> TransferSettings:
    return TransferSettings(error_log_directory=str(tmp_path / "logs"))


@pytest.fixture()
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture()
def source_ref(provider: RecordingProvider, headers: list[str]) -> SheetRef:
    rows = [
        order_row("ORD-001", "2024-01-10"),
        order_row("ORD-002", "2024-01-11", status="delivered"),
        order_row("ORD-003", "2024-01-12"),
    ]
    return provider.add_sheet("orders", "Incoming", headers, rows)


@pytest.fixture()
def dest_ref(provider: RecordingProvider, headers: list[str]) -> SheetRef:
    return provider.add_sheet("archive", "Processed", headers)


@pytest.fixture()
def make_row():
    return order_row


@pytest.fixture()
def provider_factory():
    return RecordingProvider


@pytest.fixture()
def make_workbook():
    """Write an .xlsx workbook: ``{sheet_name: [header_row, *data_rows]}``."""
    def _make(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return path

    return _make
