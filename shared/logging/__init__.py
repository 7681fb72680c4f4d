"""Logging setup and trace correlation for the roles bot."""

from __future__ import annotations

from shared.logging.config import TEXT_FORMAT, setup_logging
from shared.logging.structured import JsonFormatter, get_trace_id, set_trace_id

__all__ = ["JsonFormatter", "TEXT_FORMAT", "get_trace_id", "set_trace_id", "setup_logging"]
