import asyncio

import pytest

from gsheet.errors import AppendRejectedError
from gsheet.keeper import KeeperState
from gsheet.rows import KeyedRow, PositionalRow
from gsheet.sheet import SheetCache

from fakes import FakeSource


def test_append_by_object_matches_columns_case_insensitively(fake_source: FakeSource) -> None:
    async def runner() -> None:
        sheet = SheetCache(fake_source, "Sheet1")
        result = await sheet.append(KeyedRow({"email": "x@y.com"}))

        assert fake_source.appended == [["", "x@y.com"]]
        assert result.updated_rows == 1

    asyncio.run(runner())


def test_append_keeps_explicit_none_for_remote_skip(fake_source: FakeSource) -> None:
    async def runner() -> None:
        sheet = SheetCache(fake_source, "Sheet1")
        await sheet.append_record({"NAME": None, "Email": "  spaced   out "})

        assert fake_source.appended == [[None, "spaced out"]]

    asyncio.run(runner())


def test_append_positional_row_is_sanitized(fake_source: FakeSource) -> None:
    async def runner() -> None:
        sheet = SheetCache(fake_source, "Sheet1")
        await sheet.append(PositionalRow(["  Grace ", 42, True]))

        assert fake_source.appended == [["Grace", 42, True]]
        assert fake_source.calls == []

    asyncio.run(runner())


def test_append_invalidates_grid(fake_source: FakeSource) -> None:
    async def runner() -> None:
        sheet = SheetCache(fake_source, "Sheet1")
        await sheet.rows()
        assert sheet.grid.state is KeeperState.SETTLED

        await sheet.append_values(["Grace", "grace@x.com"])
        assert sheet.grid.state is KeeperState.EMPTY

        data = await sheet.data()
        assert fake_source.full_calls == 2
        assert data[-1] == {"Name": "Grace", "Email": "grace@x.com"}

    asyncio.run(runner())


def test_append_rejected_when_no_rows_updated(fake_source: FakeSource) -> None:
    async def runner() -> None:
        fake_source.updated_rows = 0
        sheet = SheetCache(fake_source, "Sheet1")
        await sheet.rows()

        with pytest.raises(AppendRejectedError):
            await sheet.append_values(["Grace"])
        assert sheet.grid.state is KeeperState.SETTLED

    asyncio.run(runner())


def test_append_failure_leaves_cache_untouched(fake_source: FakeSource) -> None:
    async def runner() -> None:
        sheet = SheetCache(fake_source, "Sheet1")
        await sheet.rows()

        async def broken(range_spec, row):
            raise ConnectionError("socket closed")

        fake_source.append_row = broken
        with pytest.raises(ConnectionError):
            await sheet.append_values(["Grace"])
        assert sheet.grid.state is KeeperState.SETTLED

    asyncio.run(runner())


def test_append_requires_tagged_row(fake_source: FakeSource) -> None:
    async def runner() -> None:
        sheet = SheetCache(fake_source, "Sheet1")
        with pytest.raises(AppendRejectedError):
            await sheet.append(["Ada", "ada@x.com"])  # type: ignore[arg-type]
        assert fake_source.appended == []

    asyncio.run(runner())


def test_keyed_append_reuses_cached_columns(fake_source: FakeSource) -> None:
    async def runner() -> None:
        sheet = SheetCache(fake_source, "Sheet1")
        await sheet.data()
        await sheet.append_record({"name": "Grace"})

        assert fake_source.calls == ["Sheet1"]
        assert fake_source.appended == [["Grace", ""]]

    asyncio.run(runner())
