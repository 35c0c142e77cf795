#!/usr/bin/env python3
"""Read or append rows of a Google Sheets range from the command line."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from . import open_sheet
from .config import SheetOptions
from .errors import AppendRejectedError, GSheetError
from .logging import set_trace_id, setup_logging
from .rows import KeyedRow, PositionalRow, RowInput
from .source import RemoteSource

log = logging.getLogger("gsheet.cli")


def _load_row(payload: str) -> RowInput:
    if payload.startswith("@"):
        text = Path(payload[1:]).read_text(encoding="utf-8")
    else:
        text = payload
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid row payload: {exc}") from exc
    if isinstance(data, dict):
        return KeyedRow(data)
    if isinstance(data, list):
        return PositionalRow(data)
    raise SystemExit("Row payload must be a JSON array or object")


def _dump(data: Any) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gsheet", description=__doc__)
    parser.add_argument("--spreadsheet-id", help="defaults to $GSHEET_SPREADSHEET_ID")
    parser.add_argument("--range", help="defaults to $GSHEET_RANGE")
    parser.add_argument(
        "--header-rows", type=int, help="header row number (defaults to $GSHEET_HEADER_ROWS or 1)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("rows", help="print sanitized data rows as arrays")
    sub.add_parser("data", help="print rows as objects keyed by the header row")
    sub.add_parser("columns", help="print the column names")
    append = sub.add_parser("append", help="append one row")
    append.add_argument(
        "row",
        help="JSON array (positional) or object (keyed); prefix with @ to read a file",
    )
    return parser


async def _run(
    args: argparse.Namespace,
    row: Optional[RowInput] = None,
    source: Optional[RemoteSource] = None,
) -> Any:
    options = SheetOptions.from_env(
        spreadsheet_id=args.spreadsheet_id,
        range=args.range,
        header_rows=args.header_rows,
    )
    # One-shot command: no preload task, no refresh timer.
    options = dataclasses.replace(options, preload=False, interval=None)
    async with open_sheet(options, source=source) as sheet:
        if args.command == "rows":
            return await sheet.rows()
        if args.command == "data":
            return await sheet.data()
        if args.command == "columns":
            return await sheet.columns()
        if row is None:
            raise AppendRejectedError("append needs a row payload")
        result = await sheet.append(row)
        return {"updated_rows": result.updated_rows, "updated_range": result.updated_range}


def main(
    argv: Sequence[str] | None = None, *, source: Optional[RemoteSource] = None
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING)
    set_trace_id()
    row = _load_row(args.row) if args.command == "append" else None
    try:
        _dump(asyncio.run(_run(args, row, source)))
    except GSheetError as exc:
        log.error("gsheet %s failed: %s", args.command, exc)
        sys.stderr.write(f"error: {exc}\n")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
