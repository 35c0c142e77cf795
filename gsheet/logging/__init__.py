"""Public logging helpers for the gsheet package."""

from __future__ import annotations

from gsheet.logging.config import setup_logging
from gsheet.logging.structured import JsonFormatter, get_trace_id, set_trace_id

__all__ = ["JsonFormatter", "get_trace_id", "set_trace_id", "setup_logging"]
