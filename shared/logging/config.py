"""Runtime logging configuration utilities."""

from __future__ import annotations

import logging
from typing import Mapping

from .structured import JsonFormatter

__all__ = ["setup_logging", "TEXT_FORMAT"]

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _ensure_stream_handler(logger: logging.Logger, formatter: logging.Formatter) -> None:
    """Ensure ``logger`` has a stream handler using ``formatter``."""

    stream_handler_found = False
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(formatter)
            stream_handler_found = True
    if not stream_handler_found:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def setup_logging(
    *,
    level: str | int = logging.INFO,
    json_output: bool = False,
    static_fields: Mapping[str, str] | None = None,
) -> logging.Logger:
    """Configure the root logger for the bot runtime.

    Parameters
    ----------
    level:
        Root log level, either a name such as ``"DEBUG"`` or a number.
    json_output:
        Emit one JSON object per line (``JsonFormatter``) instead of the
        plain text format.
    static_fields:
        Fields added to every JSON log event, e.g. the environment name.

    Returns
    -------
    logging.Logger
        The ``tcn`` logger that all engine loggers propagate through.
    """

    formatter: logging.Formatter
    if json_output:
        formatter = JsonFormatter(static=dict(static_fields or {}))
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    _ensure_stream_handler(root_logger, formatter)

    # discord.py is chatty at INFO during gateway reconnects.
    logging.getLogger("discord").setLevel(max(logging.WARNING, root_logger.level))

    return logging.getLogger("tcn")
