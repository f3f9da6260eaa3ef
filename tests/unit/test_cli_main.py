from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from order_transfer.cli.__main__ import main as cli_main
from order_transfer.logging.init import reset_logging
from order_transfer.models.config_models import CANONICAL_HEADERS
from order_transfer.models.sheet import SheetRef
from order_transfer.sheets.excel import ExcelSheetProvider

TRANSFER_ARGS = [
    "transfer",
    "--source-spreadsheet", "orders",
    "--source-sheet", "Incoming",
    "--dest-spreadsheet", "archive",
    "--dest-sheet", "Processed",
    "--from", "2024-01-10",
    "--to", "2024-01-11",
]


@pytest.fixture(autouse=True)
def clean_logging():
    # capsys の stdout に毎回ハンドラを張り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def workbooks(temp_workdir: Path, write_config: Path, make_workbook, make_row) -> Path:
    headers = list(CANONICAL_HEADERS)
    make_workbook(
        temp_workdir / "workbooks" / "orders.xlsx",
        {
            "Incoming": [
                headers,
                make_row("ORD-001", "2024-01-10"),
                make_row("ORD-002", "2024-01-11", status="delivered"),
                make_row("ORD-003", "2024-01-12"),
            ]
        },
    )
    make_workbook(temp_workdir / "workbooks" / "archive.xlsx", {"Processed": [headers]})
    return temp_workdir / "workbooks"


def test_cli_missing_config(temp_workdir: Path, capsys):
    code = cli_main(["spreadsheets"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config: config file not found" in out


def test_cli_config_from_env(temp_workdir: Path, sample_config_yaml: str, monkeypatch, capsys):
    cfg = temp_workdir / "custom.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    monkeypatch.setenv("ORDER_TRANSFER_CONFIG", str(cfg))

    code = cli_main(["spreadsheets"])

    assert code == 0


def test_cli_config_from_dotenv(temp_workdir: Path, sample_config_yaml: str, monkeypatch, capsys):
    cfg = temp_workdir / "other.yml"
    cfg.write_text(sample_config_yaml.replace("./workbooks", "./elsewhere"), encoding="utf-8")
    (temp_workdir / ".env").write_text(f"ORDER_TRANSFER_CONFIG={cfg}\n", encoding="utf-8")

    code = cli_main(["create-spreadsheet", "Returns", "January"])

    assert code == 0
    assert os.environ["ORDER_TRANSFER_CONFIG"] == str(cfg)
    assert (temp_workdir / "elsewhere" / "Returns.xlsx").is_file()


def test_cli_dotenv_does_not_override_env(temp_workdir: Path, sample_config_yaml: str, monkeypatch):
    cfg = temp_workdir / "custom.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / ".env").write_text("ORDER_TRANSFER_CONFIG=missing.yml\n", encoding="utf-8")
    monkeypatch.setenv("ORDER_TRANSFER_CONFIG", str(cfg))

    assert cli_main(["spreadsheets"]) == 0


def test_cli_uses_default_config_after_dotenv_run(temp_workdir: Path, write_config: Path):
    # 直前の .env 読み込みが後続の実行に残らない
    assert "ORDER_TRANSFER_CONFIG" not in os.environ
    assert cli_main(["spreadsheets"]) == 0


def test_cli_list_commands(workbooks: Path, capsys):
    assert cli_main(["spreadsheets"]) == 0
    out = capsys.readouterr().out
    assert "archive\tarchive" in out
    assert "orders\torders" in out

    assert cli_main(["sheets", "orders"]) == 0
    assert capsys.readouterr().out.strip() == "Incoming"


def test_cli_create_commands(workbooks: Path, capsys):
    assert cli_main(["create-spreadsheet", "Returns 2024", "January"]) == 0
    assert cli_main(["create-sheet", "Returns_2024", "February"]) == 0
    out = capsys.readouterr().out
    assert "INFO created spreadsheet Returns_2024" in out

    provider = ExcelSheetProvider(workbooks)
    assert provider.read_headers(SheetRef("Returns_2024", "February")) == list(CANONICAL_HEADERS)


def test_cli_preview(workbooks: Path, capsys):
    code = cli_main([
        "preview",
        "--source-spreadsheet", "orders",
        "--source-sheet", "Incoming",
        "--from", "2024-01-10",
        "--to", "2024-01-12",
        "--status", "pending",
        "--limit", "1",
    ])
    lines = capsys.readouterr().out.strip().splitlines()
    assert code == 0
    assert lines[0] == "rows=2 range=2024-01-10..2024-01-12"
    assert lines[1].startswith("DATE\tORDER ID")
    assert lines[2].startswith("2\t2024-01-10\tORD-001")
    assert len(lines) == 3


def test_cli_validate_headers_mismatch(workbooks: Path, make_workbook, capsys):
    make_workbook(workbooks / "short.xlsx", {"Sheet1": [["DATE", "ORDER ID", "NOTES"]]})

    code = cli_main([
        "validate-headers",
        "--source-spreadsheet", "orders",
        "--source-sheet", "Incoming",
        "--dest-spreadsheet", "short",
        "--dest-sheet", "Sheet1",
    ])

    out = capsys.readouterr().out
    assert code == 0
    assert "WARN destination headers do not match" in out
    report = json.loads(out.strip().splitlines()[-1])
    assert report["extra"] == ["NOTES"]
    assert "CUSTOMER NAME" in report["missing"]


def test_cli_preview_unknown_sheet_is_fatal(workbooks: Path, capsys):
    code = cli_main([
        "preview",
        "--source-spreadsheet", "orders",
        "--source-sheet", "Nope",
        "--from", "2024-01-10",
        "--to", "2024-01-12",
    ])
    assert code == 1
    assert "ERROR preview: sheet not found: Nope" in capsys.readouterr().out


def test_cli_transfer_move(workbooks: Path, capsys):
    code = cli_main(TRANSFER_ARGS)

    out = capsys.readouterr().out
    assert code == 0
    summary = [line for line in out.splitlines() if line.startswith("SUMMARY ")]
    assert len(summary) == 1
    assert "status=completed mode=move rows=2 duplicates=0 deleted=2 chunks=1" in summary[0]

    provider = ExcelSheetProvider(workbooks)
    assert [r[1] for r in provider.read_sheet(SheetRef("orders", "Incoming")).rows] == ["ORD-003"]
    assert [r[1] for r in provider.read_sheet(SheetRef("archive", "Processed")).rows] == ["ORD-001", "ORD-002"]


def test_cli_transfer_copy_twice_skips_duplicates(workbooks: Path, capsys):
    assert cli_main(TRANSFER_ARGS + ["--mode", "copy"]) == 0
    assert cli_main(TRANSFER_ARGS + ["--mode", "copy"]) == 0

    out = capsys.readouterr().out
    summaries = [line for line in out.splitlines() if line.startswith("SUMMARY ")]
    assert "rows=2 duplicates=0" in summaries[0]
    assert "rows=0 duplicates=2" in summaries[1]


def test_cli_transfer_failure_exit_code(workbooks: Path, capsys):
    args = list(TRANSFER_ARGS)
    args[args.index("Processed")] = "Missing"

    code = cli_main(args)

    out = capsys.readouterr().out
    assert code == 2
    assert "status=failed" in out


def test_cli_transfer_unsupported_duplicate_handling(workbooks: Path, capsys):
    code = cli_main(TRANSFER_ARGS + ["--duplicates", "update"])
    assert code == 2
    assert "not supported" in capsys.readouterr().out


def test_cli_transfer_invalid_date_is_fatal(workbooks: Path, capsys):
    args = list(TRANSFER_ARGS)
    args[args.index("2024-01-11")] = "someday"

    code = cli_main(args)

    assert code == 1
    assert "ERROR transfer: invalid toDate" in capsys.readouterr().out


def test_cli_debug_mode(workbooks: Path, capsys):
    assert cli_main(["--debug", "spreadsheets"]) == 0
    assert "DEBUG debug mode enabled" in capsys.readouterr().out
