"""Default cell helpers and Sheets-friendly date formatting."""

from __future__ import annotations

import datetime as dt
import re
from typing import Any, Optional

__all__ = ["gsheet_date", "gsheet_datetime", "no_change", "no_filter", "trim"]

_WHITESPACE_RE = re.compile(r"\s+")


def trim(value: Any) -> Any:
    """Collapse whitespace runs to one space and strip the ends of strings.

    Non-string values are returned untouched so booleans and numbers survive
    the write path.
    """

    if isinstance(value, str):
        return _WHITESPACE_RE.sub(" ", value).strip()
    return value


def no_change(value: str) -> str:
    return value


def no_filter(_row: Any) -> bool:
    return True


def gsheet_date(date: Optional[dt.date] = None) -> str:
    """Return ``M/D/YYYY`` which Sheets parses as a date when USER_ENTERED."""

    date = date or dt.datetime.now()
    return f"{date.month}/{date.day}/{date.year}"


def gsheet_datetime(moment: Optional[dt.datetime] = None) -> str:
    moment = moment or dt.datetime.now()
    return f"{gsheet_date(moment)} {moment.hour}:{moment.minute}:{moment.second}"
