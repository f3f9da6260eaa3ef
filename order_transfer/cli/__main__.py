from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from order_transfer.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from order_transfer.errors import TransferError
from order_transfer.logging.init import log_summary, setup_logging
from order_transfer.models.config_models import TransferSettings
from order_transfer.models.sheet import SheetRef
from order_transfer.models.transfer import TransferRequest
from order_transfer.services.executor import TransferExecutor
from order_transfer.services.filtering import filter_sheet
from order_transfer.services.headers import validate_headers
from order_transfer.services.summary import render_summary_line
from order_transfer.sheets.excel import ExcelSheetProvider

"""CLI entrypoint.

Operates on the Excel workbook backend configured by ``workbook_directory``:
- spreadsheets / sheets: list what can be picked as source / destination
- create-spreadsheet / create-sheet: new destination with the required headers
- preview: rows a transfer would pick up
- validate-headers: destination header contract report
- transfer: run a copy / move transfer and print the SUMMARY line

Config path: --config, else $ORDER_TRANSFER_CONFIG (a .env file in the working
directory is loaded first), else config/transfer.yml.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_TRANSFER_FAILED = 2

CONFIG_ENV_VAR = "ORDER_TRANSFER_CONFIG"


def _add_sheet_args(p: argparse.ArgumentParser, prefix: str, label: str) -> None:
    p.add_argument(f"--{prefix}-spreadsheet", required=True, help=f"{label} spreadsheet id")
    p.add_argument(f"--{prefix}-sheet", required=True, help=f"{label} sheet name")


def _add_range_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--from", dest="from_date", required=True, help="First day (YYYY-MM-DD), inclusive")
    p.add_argument("--to", dest="to_date", required=True, help="Last day (YYYY-MM-DD), inclusive")
    p.add_argument("--status", default=None, help="Only rows with this status (case-insensitive)")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="order-transfer", description="Move order rows between sheets")
    p.add_argument("--config", type=Path, default=None, help="Path to YAML config")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("spreadsheets", help="List spreadsheets")

    sp = sub.add_parser("sheets", help="List sheets of a spreadsheet")
    sp.add_argument("spreadsheet")

    sp = sub.add_parser("create-spreadsheet", help="Create a spreadsheet with one sheet")
    sp.add_argument("name")
    sp.add_argument("sheet")

    sp = sub.add_parser("create-sheet", help="Add a sheet to a spreadsheet")
    sp.add_argument("spreadsheet")
    sp.add_argument("sheet")

    sp = sub.add_parser("preview", help="Show rows selected by a date range / status")
    _add_sheet_args(sp, "source", "Source")
    _add_range_args(sp)
    sp.add_argument("--limit", type=int, default=10, help="Rows to print")

    sp = sub.add_parser("validate-headers", help="Check destination headers")
    _add_sheet_args(sp, "source", "Source")
    _add_sheet_args(sp, "dest", "Destination")

    sp = sub.add_parser("transfer", help="Copy or move rows")
    _add_sheet_args(sp, "source", "Source")
    _add_sheet_args(sp, "dest", "Destination")
    _add_range_args(sp)
    sp.add_argument("--mode", choices=["copy", "move"], default="move")
    sp.add_argument("--duplicates", choices=["skip", "update", "add_all"], default="skip")

    return p.parse_args(argv)


def _resolve_config_path(args: argparse.Namespace) -> Path:
    if args.config is not None:
        return args.config
    env_path = os.getenv(CONFIG_ENV_VAR)
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def _run_command(args: argparse.Namespace, settings: TransferSettings, logger: logging.Logger) -> int:
    provider = ExcelSheetProvider(settings.workbook_directory)

    if args.command == "spreadsheets":
        for info in provider.list_spreadsheets():
            print(f"{info.id}\t{info.name}")
        return EXIT_SUCCESS

    if args.command == "sheets":
        for sheet in provider.list_sheets(args.spreadsheet):
            print(sheet.name)
        return EXIT_SUCCESS

    if args.command == "create-spreadsheet":
        info = provider.create_spreadsheet(args.name, args.sheet, settings.required_headers)
        logger.info(f"created spreadsheet {info.id} with sheet '{args.sheet}'")
        return EXIT_SUCCESS

    if args.command == "create-sheet":
        provider.create_sheet(args.spreadsheet, args.sheet, settings.required_headers)
        logger.info(f"created sheet '{args.sheet}' in {args.spreadsheet}")
        return EXIT_SUCCESS

    if args.command == "preview":
        data = filter_sheet(
            provider,
            SheetRef(args.source_spreadsheet, args.source_sheet),
            args.from_date,
            args.to_date,
            args.status,
            date_column=settings.date_column,
            status_column=settings.status_column,
        )
        print(f"rows={data.row_count} range={args.from_date}..{args.to_date}")
        print("\t".join(data.headers))
        for row_number, row in list(zip(data.source_row_numbers, data.rows))[: max(args.limit, 0)]:
            print(f"{row_number}\t" + "\t".join(row))
        return EXIT_SUCCESS

    if args.command == "validate-headers":
        mismatch = validate_headers(
            provider,
            SheetRef(args.source_spreadsheet, args.source_sheet),
            SheetRef(args.dest_spreadsheet, args.dest_sheet),
            settings.required_headers,
        )
        if mismatch is None:
            logger.info("destination headers match")
        else:
            logger.warning("destination headers do not match")
            print(json.dumps(mismatch.to_payload(), ensure_ascii=False))
        return EXIT_SUCCESS

    # transfer
    request = TransferRequest.from_payload(
        {
            "sourceSpreadsheetId": args.source_spreadsheet,
            "sourceSheetName": args.source_sheet,
            "destinationSpreadsheetId": args.dest_spreadsheet,
            "destinationSheetName": args.dest_sheet,
            "fromDate": args.from_date,
            "toDate": args.to_date,
            "status": args.status,
            "mode": args.mode,
            "duplicateHandling": args.duplicates,
        }
    )
    executor = TransferExecutor(provider, settings=settings)
    result = executor.execute_transfer(request)
    for warning in result.warnings:
        logger.warning(warning)
    # log_summary が "SUMMARY " を付与する
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return EXIT_SUCCESS if result.success else EXIT_TRANSFER_FAILED


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (空リストは空のまま)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    load_dotenv(dotenv_path=Path(".env"), override=False)

    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    config_path = _resolve_config_path(args)
    try:
        settings = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        return _run_command(args, settings, logger)
    except TransferError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
