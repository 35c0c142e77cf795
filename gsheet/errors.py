"""Exception types raised by the gsheet cache and adapters."""

from __future__ import annotations

__all__ = [
    "AppendRejectedError",
    "ConfigError",
    "EmptyHeaderError",
    "GSheetError",
    "HeaderRowsDisabledError",
    "KeeperEmptyError",
    "NoDataError",
]


class GSheetError(Exception):
    """Base class for every error raised by this package."""


class NoDataError(GSheetError):
    """The remote range returned no values at all."""

    def __init__(self, range_spec: str) -> None:
        super().__init__(f"No data found in range {range_spec!r}")
        self.range_spec = range_spec


class EmptyHeaderError(GSheetError):
    """The configured header row is missing or has no cells."""

    def __init__(self, header_rows: int) -> None:
        super().__init__(
            f"Unable to turn rows into objects. Row at {header_rows} is empty."
        )
        self.header_rows = header_rows


class HeaderRowsDisabledError(GSheetError, ValueError):
    def __init__(self, header_rows: int) -> None:
        super().__init__(
            "Unable to turn rows into objects without a header_rows > 0 "
            f"(got {header_rows})"
        )
        self.header_rows = header_rows


class AppendRejectedError(GSheetError):
    """The append could not be normalised or the remote updated zero rows."""


class KeeperEmptyError(GSheetError, LookupError):
    """Raised by :meth:`gsheet.keeper.Keeper.stale` before any value settled."""


class ConfigError(GSheetError, RuntimeError):
    """Missing or malformed configuration."""
