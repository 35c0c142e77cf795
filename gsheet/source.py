"""Remote source adapter: the two network operations the cache depends on."""

from __future__ import annotations

import asyncio
import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, TypeVar

import gspread
from gspread.exceptions import APIError
from requests import exceptions as requests_exceptions

from .config import load_credentials
from .errors import NoDataError

log = logging.getLogger("gsheet.source")

Grid = list[list[str]]

_RETRY_STATUS = {408, 425, 429, 500, 502, 503, 504}

T = TypeVar("T")


@dataclass(frozen=True)
class AppendResult:
    """Confirmation returned by :meth:`RemoteSource.append_row`."""

    updated_rows: int
    updated_range: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_response(cls, response: Mapping[str, Any] | None) -> "AppendResult":
        response = response or {}
        updates = response.get("updates") or {}
        try:
            updated_rows = int(updates.get("updatedRows") or 0)
        except (TypeError, ValueError):
            updated_rows = 0
        return cls(
            updated_rows=updated_rows,
            updated_range=updates.get("updatedRange"),
            raw=response,
        )


class RemoteSource(Protocol):
    async def fetch_grid(self, range_spec: str) -> Grid:
        ...

    async def append_row(self, range_spec: str, row: Sequence[Any]) -> AppendResult:
        ...

    def close(self) -> None:
        ...


def _should_retry(exc: Exception) -> bool:
    if isinstance(exc, APIError):
        resp = getattr(exc, "response", None)
        status = getattr(resp, "status_code", None)
        if status in _RETRY_STATUS:
            return True
        text = str(getattr(resp, "text", "") or "")
        detail = str(getattr(exc, "args", [""])[0] or "")
        blob = f"{text} {detail}".lower()
        if "rate limit" in blob or "quota" in blob or "timeout" in blob:
            return True
    if isinstance(exc, requests_exceptions.RequestException):
        return True
    return False


def with_backoff(
    func: Callable[[], T],
    *,
    retries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute *func* with exponential backoff on transient failures."""

    attempt = 0
    delay = base_delay
    while True:
        try:
            return func()
        except Exception as exc:
            attempt += 1
            if attempt > retries or not _should_retry(exc):
                raise
            sleep_for = min(max_delay, delay) + random.uniform(0.0, base_delay)
            log.warning("Sheets call failed (attempt %s/%s): %s", attempt, retries, exc)
            sleep(sleep_for)
            delay *= 2


class GSpreadSource:
    """:class:`RemoteSource` backed by one gspread spreadsheet.

    The spreadsheet handle is opened lazily on first use and reused afterwards.
    gspread is synchronous, so every call runs on a small thread pool owned by
    this source; ``timeout`` bounds how long a coroutine waits for one call.
    :meth:`close` shuts the pool down.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        *,
        client: Optional[gspread.Client] = None,
        credentials: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        retries: int = 5,
        max_workers: int = 4,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self.retries = retries
        self._client = client
        self._credentials = credentials
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._lock = threading.Lock()
        self._max_workers = max_workers
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    def _get_client(self) -> gspread.Client:
        if self._client is None:
            credentials = self._credentials or load_credentials()
            log.debug("Authorising gspread client with service-account credentials")
            self._client = gspread.service_account_from_dict(credentials)
        return self._client

    def _open(self) -> gspread.Spreadsheet:
        if self._spreadsheet is not None:
            return self._spreadsheet
        with self._lock:
            if self._spreadsheet is None:
                client = self._get_client()
                self._spreadsheet = with_backoff(
                    lambda: client.open_by_key(self.spreadsheet_id), retries=self.retries
                )
        return self._spreadsheet

    def _fetch_grid_sync(self, range_spec: str) -> Grid:
        spreadsheet = self._open()
        response = with_backoff(
            lambda: spreadsheet.values_get(range_spec), retries=self.retries
        )
        values = (response or {}).get("values")
        if values is None:
            raise NoDataError(range_spec)
        return [[cell for cell in row] for row in values]

    def _append_row_sync(self, range_spec: str, row: Sequence[Any]) -> AppendResult:
        spreadsheet = self._open()
        params = {
            "valueInputOption": "USER_ENTERED",
            "insertDataOption": "INSERT_ROWS",
        }
        body = {"range": range_spec, "values": [list(row)]}
        # Appends are not idempotent; never retry them.
        response = spreadsheet.values_append(range_spec, params, body)
        return AppendResult.from_response(response)

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix=f"gsheet-{self.spreadsheet_id[:8]}",
                )
                log.debug(
                    "gspread pool started for %s (max_workers=%d)",
                    self.spreadsheet_id,
                    self._max_workers,
                )
            return self._pool

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._get_pool(), func, *args)
        if self.timeout is not None:
            return await asyncio.wait_for(future, self.timeout)
        return await future

    def close(self) -> None:
        """Shut down the thread pool; a later call starts a new one."""

        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=False)
            log.debug("gspread pool stopped for %s", self.spreadsheet_id)

    async def fetch_grid(self, range_spec: str) -> Grid:
        return await self._call(self._fetch_grid_sync, range_spec)

    async def append_row(self, range_spec: str, row: Sequence[Any]) -> AppendResult:
        result = await self._call(self._append_row_sync, range_spec, row)
        log.info(
            "appended row",
            extra={
                "spreadsheet_id": self.spreadsheet_id,
                "range": range_spec,
                "updated_rows": result.updated_rows,
            },
        )
        return result


__all__ = [
    "AppendResult",
    "GSpreadSource",
    "Grid",
    "RemoteSource",
    "with_backoff",
]
