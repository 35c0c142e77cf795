"""Cached, typed access to one spreadsheet range.

:class:`SheetCache` composes two :class:`~gsheet.keeper.Keeper` cells:

``grid``
    The full configured range. Every read goes through it.
``columns``
    The sanitized, key-transformed header row. Its producer reuses a settled
    grid when one exists and otherwise fetches only the header row, so a
    header-only question never forces a full fetch.

Writes go straight to the remote source and invalidate ``grid`` on success.
Whenever ``grid`` stores a new value, ``columns`` is invalidated with it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from gspread.utils import a1_range_to_grid_range, absolute_range_name, rowcol_to_a1

from .errors import (
    AppendRejectedError,
    EmptyHeaderError,
    HeaderRowsDisabledError,
    KeeperEmptyError,
    NoDataError,
)
from .keeper import ErrorObserver, Keeper, KeeperSnapshot
from .rows import (
    InputValue,
    KeyedRow,
    KeyTransform,
    PositionalRow,
    RowArray,
    RowFilter,
    RowInput,
    RowObject,
    Sanitize,
    header_cells,
    resolve_row,
    sanitize_rows,
    to_objects,
)
from .source import AppendResult, Grid, RemoteSource
from .util import no_change, no_filter, trim

log = logging.getLogger("gsheet.sheet")


def _split_range(range_spec: str) -> Tuple[str, str]:
    """Split ``'Sheet name'!B3:C`` into the unquoted sheet name and the cells."""

    text = range_spec.strip()
    if not text.startswith("'"):
        sheet, _, cells = text.partition("!")
        return sheet.strip(), cells.strip()
    index = 1
    while index < len(text):
        if text[index] == "'":
            if text[index + 1 : index + 2] != "'":
                break
            index += 1
        index += 1
    sheet = text[1:index].replace("''", "'")
    rest = text[index + 1 :].strip()
    return sheet, rest[1:].strip() if rest.startswith("!") else ""


def _header_range(range_spec: str, header_rows: int) -> Optional[str]:
    """A1 range of the header row inside ``range_spec``.

    The header sits ``header_rows - 1`` rows below the range's first row and
    spans the range's columns (through ``ZZZ`` when the range is open on the
    right). Returns ``None`` when the range ends before that row.
    """

    sheet, cells = _split_range(range_spec)
    bounds = a1_range_to_grid_range(cells) if cells else {}
    row = bounds.get("startRowIndex", 0) + header_rows
    last_row = bounds.get("endRowIndex")
    if last_row is not None and row > last_row:
        return None
    first = rowcol_to_a1(row, bounds.get("startColumnIndex", 0) + 1)
    last_col = bounds.get("endColumnIndex")
    last = rowcol_to_a1(row, last_col) if last_col else f"ZZZ{row}"
    return absolute_range_name(sheet, f"{first}:{last}")


class SheetCache:
    """Rows, row objects and column names for ``range`` with a shared cache.

    With ``owns_source`` the cache also closes ``source`` from :meth:`close`.
    """

    def __init__(
        self,
        source: RemoteSource,
        range: str,
        *,
        header_rows: int = 1,
        key_transform: KeyTransform = no_change,
        sanitize: Sanitize = trim,
        filter: RowFilter = no_filter,
        preload: bool = False,
        interval: Optional[float] = None,
        name: Optional[str] = None,
        on_refresh_error: Optional[ErrorObserver] = None,
        owns_source: bool = False,
    ) -> None:
        self.source = source
        self._owns_source = owns_source
        self.range = range
        self.header_rows = header_rows
        self.key_transform = key_transform
        self.sanitize = sanitize
        self.filter = filter
        self.name = name or _split_range(range)[0] or range
        self._grid: Keeper[Grid] = Keeper(
            self._fetch_grid,
            name=f"{self.name}:grid",
            on_error=on_refresh_error,
            on_change=self._grid_changed,
        )
        self._columns: Keeper[List[str]] = Keeper(
            self._resolve_columns, name=f"{self.name}:columns"
        )
        self._deferred_interval: Optional[float] = None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            loop_running = False
        else:
            loop_running = True

        if preload:
            if loop_running:
                self._grid.prime()
            else:
                log.debug("preload skipped for %s: no running event loop", self.name)
        if interval:
            if loop_running:
                self.keep_fresh(interval)
            else:
                self._deferred_interval = interval
                log.debug(
                    "background refresh for %s deferred until first use", self.name
                )

    def __repr__(self) -> str:
        return f"<SheetCache name={self.name!r} range={self.range!r}>"

    async def __aenter__(self) -> "SheetCache":
        self._start_deferred()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def grid(self) -> Keeper[Grid]:
        return self._grid

    @property
    def column_keeper(self) -> Keeper[List[str]]:
        return self._columns

    @property
    def header_range(self) -> Optional[str]:
        return _header_range(self.range, self.header_rows)

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------
    async def _fetch_grid(self) -> Grid:
        return await self.source.fetch_grid(self.range)

    def _grid_changed(self) -> None:
        # Every newly stored grid may carry a different header row.
        self._columns.fresh()

    async def _resolve_columns(self) -> List[str]:
        try:
            grid = self._grid.stale()
        except KeeperEmptyError:
            header_range = self.header_range
            if header_range is None:
                raise EmptyHeaderError(self.header_rows)
            try:
                narrow = await self.source.fetch_grid(header_range)
            except NoDataError as exc:
                # A blank row comes back without any values.
                raise EmptyHeaderError(self.header_rows) from exc
            cells = header_cells(narrow, 0)
        else:
            cells = header_cells(grid, self.header_rows - 1)
        if not cells:
            raise EmptyHeaderError(self.header_rows)
        return [self.key_transform(self.sanitize(cell)) for cell in cells]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def columns(self) -> List[str]:
        if not self.header_rows > 0:
            raise HeaderRowsDisabledError(self.header_rows)
        self._start_deferred()
        return await self._columns.get()

    async def rows(self) -> List[RowArray]:
        self._start_deferred()
        grid = await self._grid.get()
        return sanitize_rows(grid, self.header_rows, self.sanitize, self.filter)

    async def data(self) -> List[RowObject]:
        if not self.header_rows > 0:
            raise HeaderRowsDisabledError(self.header_rows)
        # Rows first: when the grid is empty this fills it, so columns() can
        # slice the header from it instead of fetching the header row again.
        rows = await self.rows()
        keys = await self.columns()
        return to_objects(rows, keys, self.filter)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def append(self, row: RowInput) -> AppendResult:
        """Append one row and invalidate the row cache on success.

        Raises :class:`~gsheet.errors.AppendRejectedError` when the input is not
        a :class:`PositionalRow`/:class:`KeyedRow` or when the remote reports
        zero updated rows; the cache is left untouched in both cases.
        """

        self._start_deferred()
        columns = await self.columns() if isinstance(row, KeyedRow) else None
        values = resolve_row(row, columns, self.sanitize)
        result = await self.source.append_row(self.range, values)
        if not result.updated_rows > 0:
            raise AppendRejectedError("Failed to save your information. Please try again.")
        self._grid.fresh()
        return result

    async def append_values(self, values: Sequence[InputValue]) -> AppendResult:
        return await self.append(PositionalRow(list(values)))

    async def append_record(self, values: Mapping[str, InputValue]) -> AppendResult:
        return await self.append(KeyedRow(dict(values)))

    # ------------------------------------------------------------------
    # Freshness
    # ------------------------------------------------------------------
    def refresh(self) -> None:
        """Invalidate rows and column names; the next read fetches again."""

        self._grid.fresh()
        self._columns.fresh()

    def keep_fresh(self, interval: float) -> None:
        self._deferred_interval = None
        self._grid.start(interval)

    def _start_deferred(self) -> None:
        if self._deferred_interval is not None:
            self.keep_fresh(self._deferred_interval)

    async def close(self) -> None:
        self._deferred_interval = None
        await self._grid.close()
        await self._columns.close()
        if self._owns_source:
            self.source.close()

    def snapshot(self) -> Dict[str, KeeperSnapshot]:
        return {"grid": self._grid.snapshot(), "columns": self._columns.snapshot()}


__all__ = ["SheetCache"]
