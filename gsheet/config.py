"""Configuration helpers for gsheet.

Options come either from keyword arguments or from the environment:

``GSHEET_SPREADSHEET_ID`` / ``GSHEET_RANGE``
    Required. Spreadsheet key and the range (usually a sheet name) to cache.
``GSHEET_HEADER_ROWS``
    1-based row number holding the column names (default ``1``; ``0`` disables
    object mapping).
``GSHEET_PRELOAD``
    ``1``/``true``/``yes`` primes the row cache at construction.
``GSHEET_REFRESH_INTERVAL_SEC``
    Background refresh period in seconds; unset or ``0`` disables it.
``GSPREAD_CREDENTIALS``
    Service-account JSON used by :class:`gsheet.source.GSpreadSource`.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError

__all__ = [
    "SheetOptions",
    "describe",
    "load_credentials",
]

log = logging.getLogger("gsheet.config")

_TRUE = {"1", "true", "yes", "on"}
_MISSING_VALUE = "—"
_SECRET_KEYS = {"GSPREAD_CREDENTIALS"}


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or str(value).strip() == "":
        raise ConfigError(f"Missing required environment variable: {name}")
    return value.strip()


def _int_env(key: str, default: int, *, min_value: int | None = None) -> int:
    """Parse an optional integer environment variable defensively."""

    raw = os.getenv(key)
    if raw is None:
        return default

    text = str(raw).strip()
    if not text:
        return default

    try:
        value = int(text)
    except ValueError:
        log.warning("config: %s='%s' invalid; using default %s", key, text, default)
        return default

    if min_value is not None and value < min_value:
        log.warning("config: %s=%s < min %s; clamping", key, value, min_value)
        value = min_value

    return value


def _float_env(key: str) -> Optional[float]:
    raw = (os.getenv(key) or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        log.warning("config: %s='%s' invalid; background refresh disabled", key, raw)
        return None
    return value if value > 0 else None


def _bool_env(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUE


def _mask_service_account(text: str) -> str:
    suffix = hashlib.sha1(text.encode("utf-8", "ignore")).hexdigest()[:4]
    return f"***sa-json:len={len(text)}-{suffix}"


def load_credentials() -> Mapping[str, Any]:
    """Return the service-account mapping stored in ``GSPREAD_CREDENTIALS``."""

    raw = os.getenv("GSPREAD_CREDENTIALS")
    if not raw:
        raise ConfigError("GSPREAD_CREDENTIALS environment variable is required")
    try:
        creds = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError("GSPREAD_CREDENTIALS must be valid JSON") from exc
    if not isinstance(creds, Mapping):
        raise ConfigError("GSPREAD_CREDENTIALS JSON must represent an object")
    return creds


@dataclass(frozen=True)
class SheetOptions:
    """Construction options shared by :func:`gsheet.open_sheet` and the CLI."""

    spreadsheet_id: str
    range: str
    header_rows: int = 1
    preload: bool = False
    interval: Optional[float] = None

    def __post_init__(self) -> None:
        if not str(self.spreadsheet_id or "").strip():
            raise ConfigError("spreadsheet_id must be non-empty")
        if not str(self.range or "").strip():
            raise ConfigError("range must be non-empty")
        if self.header_rows < 0:
            raise ConfigError(f"header_rows must be >= 0 (got {self.header_rows})")
        if self.interval is not None and self.interval <= 0:
            raise ConfigError(f"interval must be positive (got {self.interval})")

    @classmethod
    def from_env(cls, **overrides: Any) -> "SheetOptions":
        """Build options from the environment; non-``None`` overrides win."""

        values: Dict[str, Any] = {}
        given = {key: value for key, value in overrides.items() if value is not None}
        values["spreadsheet_id"] = given.pop("spreadsheet_id", None) or _require_env(
            "GSHEET_SPREADSHEET_ID"
        )
        values["range"] = given.pop("range", None) or _require_env("GSHEET_RANGE")
        values["header_rows"] = given.pop(
            "header_rows", _int_env("GSHEET_HEADER_ROWS", 1, min_value=0)
        )
        values["preload"] = given.pop("preload", _bool_env("GSHEET_PRELOAD"))
        values["interval"] = given.pop(
            "interval", _float_env("GSHEET_REFRESH_INTERVAL_SEC")
        )
        if given:
            raise ConfigError(f"Unknown options: {', '.join(sorted(given))}")
        options = cls(**values)
        log.info("config loaded", extra={"config": json.dumps(describe(options))})
        return options


def describe(options: Optional[SheetOptions] = None) -> Dict[str, str]:
    """Return a redacted snapshot of the effective configuration."""

    snapshot: Dict[str, str] = {}
    if options is not None:
        snapshot.update(
            {
                "GSHEET_SPREADSHEET_ID": options.spreadsheet_id,
                "GSHEET_RANGE": options.range,
                "GSHEET_HEADER_ROWS": str(options.header_rows),
                "GSHEET_PRELOAD": "true" if options.preload else "false",
                "GSHEET_REFRESH_INTERVAL_SEC": (
                    str(options.interval) if options.interval else _MISSING_VALUE
                ),
            }
        )
    for key in _SECRET_KEYS:
        raw = os.getenv(key)
        snapshot[key] = _mask_service_account(raw) if raw else _MISSING_VALUE
    return snapshot
