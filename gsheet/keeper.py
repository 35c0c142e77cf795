"""Deduplicating, staleness-aware cache cell.

A :class:`Keeper` wraps a zero-argument coroutine function (the *producer*) and
holds at most one in-flight or last-settled result of it:

* ``EMPTY``: nothing cached; the next :meth:`Keeper.get` runs the producer.
* ``PENDING``: one producer task is running; every caller awaits that task.
* ``SETTLED``: a value is cached and returned without touching the network.

Failures are never cached. A failed task drops the keeper back to ``EMPTY`` and
every waiter attached to it receives the same exception.

State transitions happen on the event loop thread without an ``await`` between
reading and writing state, so no locks are involved.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from .errors import KeeperEmptyError

UTC = dt.timezone.utc
log = logging.getLogger("gsheet.keeper")

T = TypeVar("T")

Producer = Callable[[], Awaitable[T]]
ErrorObserver = Callable[[str, BaseException], None]

_UNSET: Any = object()


class KeeperState(str, enum.Enum):
    EMPTY = "empty"
    PENDING = "pending"
    SETTLED = "settled"


@dataclass(frozen=True)
class KeeperSnapshot:
    """Immutable view of a keeper's telemetry."""

    name: str
    state: KeeperState
    last_refresh_at: Optional[dt.datetime]
    age_sec: Optional[int]
    last_result: Optional[str]
    last_error: Optional[str]
    last_trigger: Optional[str]
    last_latency_ms: Optional[int]
    item_count: Optional[int]
    generation: int
    refresh_interval_sec: Optional[float]


def _errtext(exc: BaseException) -> str:
    s = str(exc).strip()
    return s or type(exc).__name__


def _count_items(value: Any) -> Optional[int]:
    if value is None or isinstance(value, (str, bytes)):
        return None
    if hasattr(value, "__len__"):
        try:
            return len(value)
        except TypeError:
            return None
    return None


class Keeper(Generic[T]):
    """Share one execution of ``producer`` between concurrent callers.

    ``on_error`` is called with ``(name, exc)`` when a background refresh
    started by :meth:`start` fails; the previous value stays in place.
    ``on_change`` is called after every newly stored value.
    """

    def __init__(
        self,
        producer: Producer[T],
        *,
        name: str = "keeper",
        on_error: Optional[ErrorObserver] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.name = name
        self._producer = producer
        self._on_error = on_error
        self._on_change = on_change
        self._value: Any = _UNSET
        self._last_refresh: Optional[dt.datetime] = None
        self._pending: Optional[asyncio.Task[T]] = None
        self._generation = 0
        self._timer: Optional[asyncio.Task[None]] = None
        self._interval: Optional[float] = None
        self._last_result: Optional[str] = None
        self._last_error: Optional[str] = None
        self._last_trigger: Optional[str] = None
        self._last_latency_ms: Optional[int] = None
        self._last_item_count: Optional[int] = None

    def __repr__(self) -> str:
        return f"<Keeper name={self.name!r} state={self.state.value}>"

    @property
    def state(self) -> KeeperState:
        if self._value is not _UNSET:
            return KeeperState.SETTLED
        if self._pending is not None:
            return KeeperState.PENDING
        return KeeperState.EMPTY

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def refreshing(self) -> bool:
        """``True`` while a background refresh timer is installed."""

        return self._timer is not None and not self._timer.done()

    def age_sec(self) -> Optional[int]:
        if not self._last_refresh:
            return None
        return int((dt.datetime.now(UTC) - self._last_refresh).total_seconds())

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    async def get(self) -> T:
        """Return the settled value, joining or starting the single fetch."""

        if self._value is not _UNSET:
            return self._value
        task = self._pending
        if task is None:
            task = self._spawn("get")
        # Shield so a cancelled waiter does not cancel the fetch others share.
        return await asyncio.shield(task)

    def stale(self) -> T:
        """Return the settled value without waiting, or raise.

        Raises :class:`~gsheet.errors.KeeperEmptyError` when nothing has
        settled yet, including while the first fetch is still pending. The
        producer is never invoked.
        """

        if self._value is _UNSET:
            raise KeeperEmptyError(f"keeper {self.name!r} has no settled value")
        return self._value

    def fresh(self) -> None:
        """Discard the cached value so the next :meth:`get` runs the producer.

        A fetch already in flight keeps serving the callers attached to it but
        its result is no longer stored.
        """

        self._generation += 1
        self._value = _UNSET
        self._last_refresh = None
        self._pending = None

    def prime(self) -> Optional[asyncio.Task[T]]:
        """Start a fetch without awaiting it. Requires a running loop."""

        if self._value is not _UNSET:
            return None
        if self._pending is not None:
            return self._pending
        return self._spawn("prime")

    def _spawn(self, trigger: str) -> asyncio.Task[T]:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run(self._generation, trigger), name=f"keeper:{self.name}"
        )
        task.add_done_callback(_consume_exception)
        self._pending = task
        return task

    async def _run(self, generation: int, trigger: str) -> T:
        t0 = time.monotonic()
        try:
            value = await self._producer()
        except asyncio.CancelledError:
            self._release_pending()
            raise
        except Exception as exc:
            self._release_pending()
            self._record("fail", trigger, t0, error=_errtext(exc))
            raise
        self._release_pending()
        if generation == self._generation:
            self._commit(value)
            self._record("ok", trigger, t0, value=value)
        else:
            self._record("discarded", trigger, t0, value=value)
        return value

    def _release_pending(self) -> None:
        if self._pending is not None and self._pending is asyncio.current_task():
            self._pending = None

    def _commit(self, value: T) -> None:
        self._value = value
        self._last_refresh = dt.datetime.now(UTC)
        if self._on_change is not None:
            self._on_change()

    # ------------------------------------------------------------------
    # Background refresh
    # ------------------------------------------------------------------
    def start(self, interval: float) -> asyncio.Task[None]:
        """Refresh every ``interval`` seconds, replacing any previous timer."""

        if interval is None or interval <= 0:
            raise ValueError(f"interval must be positive (got {interval!r})")
        loop = asyncio.get_running_loop()
        self.stop()
        self._interval = float(interval)
        self._timer = loop.create_task(
            self._tick_forever(self._interval), name=f"keeper:{self.name}:interval"
        )
        log.debug("keeper %s refreshing every %.3fs", self.name, self._interval)
        return self._timer

    def stop(self) -> None:
        """Cancel the background refresh timer, if any."""

        timer, self._timer = self._timer, None
        self._interval = None
        if timer is not None and not timer.done():
            timer.cancel()

    async def close(self) -> None:
        """Cancel the background refresh timer and wait for it to finish."""

        timer = self._timer
        self.stop()
        if timer is None:
            return
        try:
            await timer
        except asyncio.CancelledError:
            pass

    async def _tick_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.refresh_in_background()

    async def refresh_in_background(self) -> bool:
        """Run the producer once outside the dedup path.

        Returns ``True`` when a new value was stored. Failures are logged and
        reported to ``on_error``; they never propagate.
        """

        generation = self._generation
        t0 = time.monotonic()
        try:
            value = await self._producer()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._record("fail", "interval", t0, error=_errtext(exc))
            log.warning("Failed to refresh %s: %s", self.name, _errtext(exc))
            self._notify(exc)
            return False
        if generation != self._generation:
            self._record("discarded", "interval", t0, value=value)
            return False
        self._commit(value)
        self._record("ok", "interval", t0, value=value)
        return True

    def _notify(self, exc: BaseException) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(self.name, exc)
        except Exception:
            log.exception("refresh error observer failed", extra={"keeper": self.name})

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------
    def _record(
        self,
        result: str,
        trigger: str,
        t0: float,
        *,
        value: Any = None,
        error: Optional[str] = None,
    ) -> None:
        self._last_result = result
        self._last_trigger = trigger
        self._last_latency_ms = int((time.monotonic() - t0) * 1000)
        self._last_error = error
        if result != "fail":
            self._last_item_count = _count_items(value)
        log.info(
            "[refresh] keeper=%s trigger=%s duration=%dms result=%s count=%s error=%s",
            self.name,
            trigger,
            self._last_latency_ms,
            result,
            "-" if self._last_item_count is None else self._last_item_count,
            error or "-",
        )

    def snapshot(self) -> KeeperSnapshot:
        return KeeperSnapshot(
            name=self.name,
            state=self.state,
            last_refresh_at=self._last_refresh,
            age_sec=self.age_sec(),
            last_result=self._last_result,
            last_error=self._last_error,
            last_trigger=self._last_trigger,
            last_latency_ms=self._last_latency_ms,
            item_count=self._last_item_count,
            generation=self._generation,
            refresh_interval_sec=self._interval if self.refreshing else None,
        )


def _consume_exception(task: asyncio.Task[Any]) -> None:
    # Failures reach waiters through the shield; this only silences the
    # "exception was never retrieved" warning for unawaited primes.
    if not task.cancelled():
        task.exception()


__all__ = ["Keeper", "KeeperSnapshot", "KeeperState"]
