"""Project-wide logging setup.

Every module calls ``get_logger(__name__)``.  A single colour-tagged
console handler is installed on the package root logger the first time
one is requested; child loggers propagate to it.
"""

from __future__ import annotations

import logging
import sys

ROOT_LOGGER = "stressdetect"

_COLOURS = {
    logging.DEBUG: "\033[36m",     # cyan
    logging.INFO: "\033[32m",      # green
    logging.WARNING: "\033[33m",   # yellow
    logging.ERROR: "\033[31m",     # red
    logging.CRITICAL: "\033[35m",  # magenta
}
_RESET = "\033[0m"

_BASE_FMT = "%(asctime)s  %(levelname)s  %(name)-28s  %(message)s"
_DATE_FMT = "%H:%M:%S"


class _ColourFormatter(logging.Formatter):
    """Wrap the level tag in an ANSI colour."""

    def format(self, record: logging.LogRecord) -> str:
        colour = _COLOURS.get(record.levelno, _RESET)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{colour}{record.levelname:<8}{_RESET}"
        return super().format(record)


_configured = False


def _install_handler() -> None:
    global _configured
    if _configured:
        return
    root = logging.getLogger(ROOT_LOGGER)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ColourFormatter(fmt=_BASE_FMT, datefmt=_DATE_FMT))
    root.addHandler(handler)
    root.setLevel(logging.WARNING)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``stressdetect`` hierarchy."""
    _install_handler()
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def set_level(level: int) -> None:
    """Set the minimum severity for all package loggers."""
    _install_handler()
    logging.getLogger(ROOT_LOGGER).setLevel(level)
