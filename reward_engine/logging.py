"""Logging setup for the tool server and scripts."""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Libraries that log every statement or request at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "mcp")


def setup_logging(level: str = "INFO") -> None:
    """Send all logs to stderr at `level`; unknown level names fall back to INFO."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    # stdout carries the MCP stdio transport
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
