"""In-memory stand-ins shared by the test modules."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

from gsheet.errors import NoDataError
from gsheet.source import AppendResult


class FakeSource:
    """:class:`gsheet.source.RemoteSource` that keeps its grid in memory.

    Fetches of ``full_range`` return a copy of ``grid``. Any other range is
    treated as the narrow header fetch and returns just the header row.
    """

    def __init__(
        self,
        grid: Optional[List[List[str]]],
        *,
        full_range: str = "Sheet1",
        header_rows: int = 1,
        updated_rows: int = 1,
    ) -> None:
        self.grid = grid
        self.full_range = full_range
        self.header_rows = header_rows
        self.updated_rows = updated_rows
        self.calls: list[str] = []
        self.appended: list[list[Any]] = []
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None
        self.closed = False

    @property
    def full_calls(self) -> int:
        return sum(1 for call in self.calls if call == self.full_range)

    @property
    def header_calls(self) -> int:
        return sum(1 for call in self.calls if call != self.full_range)

    async def fetch_grid(self, range_spec: str) -> List[List[str]]:
        self.calls.append(range_spec)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.grid is None:
            raise NoDataError(range_spec)
        if range_spec == self.full_range:
            return [list(row) for row in self.grid]
        index = self.header_rows - 1
        # The API omits "values" entirely for a blank row.
        if index >= len(self.grid) or not any(cell != "" for cell in self.grid[index]):
            raise NoDataError(range_spec)
        return [list(self.grid[index])]

    async def append_row(self, range_spec: str, row: Sequence[Any]) -> AppendResult:
        self.appended.append(list(row))
        if self.updated_rows > 0 and self.grid is not None:
            self.grid.append(["" if cell is None else str(cell) for cell in row])
        return AppendResult.from_response(
            {"updates": {"updatedRows": self.updated_rows, "updatedRange": f"{range_spec}!A9:B9"}}
        )

    def close(self) -> None:
        self.closed = True


class RangeSource:
    """Source answering from a fixed ``{range: grid}`` table.

    Unknown ranges raise :class:`NoDataError`, like an empty API response.
    """

    def __init__(self, ranges: Dict[str, List[List[str]]]) -> None:
        self.ranges = ranges
        self.calls: list[str] = []
        self.appended: list[list[Any]] = []

    async def fetch_grid(self, range_spec: str) -> List[List[str]]:
        self.calls.append(range_spec)
        if range_spec not in self.ranges:
            raise NoDataError(range_spec)
        return [list(row) for row in self.ranges[range_spec]]

    async def append_row(self, range_spec: str, row: Sequence[Any]) -> AppendResult:
        self.appended.append(list(row))
        return AppendResult.from_response({"updates": {"updatedRows": 1}})

    def close(self) -> None:
        pass
