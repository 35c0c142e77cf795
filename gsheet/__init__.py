"""Simple cached abstractions for Google Sheets ranges.

Typical use::

    from gsheet import KeyedRow, SheetOptions, open_sheet

    sheet = open_sheet(SheetOptions.from_env())
    for record in await sheet.data():
        ...
    await sheet.append(KeyedRow({"email": "ada@example.com"}))
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .config import SheetOptions, describe, load_credentials
from .errors import (
    AppendRejectedError,
    ConfigError,
    EmptyHeaderError,
    GSheetError,
    HeaderRowsDisabledError,
    KeeperEmptyError,
    NoDataError,
)
from .keeper import Keeper, KeeperSnapshot, KeeperState
from .rows import KeyedRow, PositionalRow, RowInput
from .sheet import SheetCache
from .source import AppendResult, GSpreadSource, RemoteSource
from .util import gsheet_date, gsheet_datetime, no_change, no_filter, trim

__all__ = [
    "AppendRejectedError",
    "AppendResult",
    "ConfigError",
    "EmptyHeaderError",
    "GSheetError",
    "GSpreadSource",
    "HeaderRowsDisabledError",
    "Keeper",
    "KeeperEmptyError",
    "KeeperSnapshot",
    "KeeperState",
    "KeyedRow",
    "NoDataError",
    "PositionalRow",
    "RemoteSource",
    "RowInput",
    "SheetCache",
    "SheetOptions",
    "describe",
    "gsheet_date",
    "gsheet_datetime",
    "load_credentials",
    "no_change",
    "no_filter",
    "open_sheet",
    "trim",
]


def open_sheet(
    options: SheetOptions,
    *,
    source: Optional[RemoteSource] = None,
    credentials: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> SheetCache:
    """Build a :class:`SheetCache` for ``options``.

    ``source`` defaults to a :class:`GSpreadSource` for ``options.spreadsheet_id``,
    which the returned cache then owns and closes.
    Remaining keyword arguments (``key_transform``, ``sanitize``, ``filter``,
    ``name``, ``on_refresh_error``) are passed to :class:`SheetCache`.
    """

    if source is None:
        source = GSpreadSource(options.spreadsheet_id, credentials=credentials)
        kwargs.setdefault("owns_source", True)
    return SheetCache(
        source,
        options.range,
        header_rows=options.header_rows,
        preload=options.preload,
        interval=options.interval,
        **kwargs,
    )
