"""Option-gated debug tracing."""

from __future__ import annotations

import logging

from .config_schema import DollarSignOptions


def trace(logger: logging.Logger, options: DollarSignOptions | None, message: str) -> None:
    """Log *message* at DEBUG only when enable_debug_logging is set."""
    if options is not None and options.enable_debug_logging:
        logger.debug(message)
