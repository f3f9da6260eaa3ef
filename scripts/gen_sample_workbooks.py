#!/usr/bin/env python3
"""Sample workbook generator for manual and performance runs.

Writes two workbooks into a directory usable as ``workbook_directory``:
- ``<source>.xlsx``: one sheet of synthetic order rows (header row + data)
  spread over a date range with a mix of statuses
- ``<archive>.xlsx``: one sheet holding only the header row, optionally
  pre-seeded with a share of the source orders so duplicate skipping shows up

Example:
  %(prog)s ./workbooks --rows 5000 --from 2024-01-01 --days 31 --overlap 0.1
  order-transfer transfer --source-spreadsheet orders --source-sheet Incoming \\
      --dest-spreadsheet archive --dest-sheet Processed --from 2024-01-01 --to 2024-01-15
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

from order_transfer.models.config_models import CANONICAL_HEADERS

STATUSES = ["pending", "dispatched", "delivered", "returned", "cancelled"]
CITIES = ["Karachi", "Lahore", "Islamabad", "Faisalabad", "Multan", "Peshawar"]
AGENTS = ["Bilal", "Sana", "Usman", "Hira"]


def generate_orders(rows: int, start: pd.Timestamp, days: int, seed: int = 42) -> pd.DataFrame:
    """Generate synthetic order rows laid out in CANONICAL_HEADERS order.

    Args:
        rows: Number of data rows
        start: First order date
        days: Number of calendar days the dates are spread over
        seed: Random seed for reproducible data

    Returns:
        DataFrame whose columns are CANONICAL_HEADERS, every cell a string
    """
    rng = np.random.default_rng(seed)
    offsets = rng.integers(0, days, rows)
    statuses = rng.choice(STATUSES, rows, p=[0.35, 0.2, 0.3, 0.1, 0.05])
    returned = statuses == "returned"

    data = {
        "DATE": [(start + pd.Timedelta(days=int(d))).strftime("%Y-%m-%d") for d in offsets],
        "ORDER ID": [f"ORD-{i:06d}" for i in range(1, rows + 1)],
        "TRACKING ID": [f"TRK{n:09d}" for n in rng.integers(0, 10**9, rows)],
        "CUSTOMER NAME": [f"Customer {n}" for n in rng.integers(1, 5000, rows)],
        "PHONE": [f"03{n:09d}" for n in rng.integers(0, 10**9, rows)],
        "CITY": rng.choice(CITIES, rows).tolist(),
        "COD": [str(n) for n in rng.integers(5, 500, rows) * 10],
        "REMARKS ON STATUS": ["" for _ in range(rows)],
        "AGENT NAME": rng.choice(AGENTS, rows).tolist(),
        "STATUS": statuses.tolist(),
        "EXPORT": ["" for _ in range(rows)],
        "DELIVERY TYPE": rng.choice(["standard", "express"], rows, p=[0.8, 0.2]).tolist(),
        "RETURN REASON": ["refused" if r else "" for r in returned],
        "REMARKS IF RETURNED": ["" for _ in range(rows)],
    }
    return pd.DataFrame(data, columns=list(CANONICAL_HEADERS))


def write_workbook(path: Path, sheet_name: str, df: pd.DataFrame) -> None:
    """Write ``df`` as header row + data rows into a single-sheet workbook."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=sheet_name, header=True, index=False)
    print(f"Created {path} ({sheet_name}: {len(df):,} rows)")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate sample order workbooks for order-transfer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("directory", type=Path, help="Output directory (workbook_directory)")
    parser.add_argument("--rows", type=int, default=1_000, help="Source data rows (default: 1,000)")
    parser.add_argument("--from", dest="from_date", default="2024-01-01", help="First order date")
    parser.add_argument("--days", type=int, default=31, help="Days the order dates span (default: 31)")
    parser.add_argument("--overlap", type=float, default=0.0,
                        help="Share of source orders already present in the archive (0-1)")
    parser.add_argument("--source", default="orders", help="Source spreadsheet id (default: orders)")
    parser.add_argument("--source-sheet", default="Incoming")
    parser.add_argument("--archive", default="archive", help="Archive spreadsheet id (default: archive)")
    parser.add_argument("--archive-sheet", default="Processed")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    if args.rows <= 0 or args.days <= 0:
        print("Error: --rows and --days must be positive", file=sys.stderr)
        return 1
    if not 0.0 <= args.overlap <= 1.0:
        print("Error: --overlap must be within 0-1", file=sys.stderr)
        return 1
    try:
        start = pd.Timestamp(args.from_date)
    except ValueError:
        print(f"Error: invalid --from date: {args.from_date}", file=sys.stderr)
        return 1

    orders = generate_orders(args.rows, start, args.days, args.seed)
    # 重複スキップ確認用に一部を転送先へ
    archived = orders.sample(frac=args.overlap, random_state=args.seed).sort_index()

    write_workbook(args.directory / f"{args.source}.xlsx", args.source_sheet, orders)
    write_workbook(args.directory / f"{args.archive}.xlsx", args.archive_sheet, archived)
    return 0


if __name__ == "__main__":
    sys.exit(main())
