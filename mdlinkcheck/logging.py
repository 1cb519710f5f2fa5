"""Logger hierarchy and console setup for mdlinkcheck.

Log records always go to stderr so that the report printed on stdout,
text or JSON, can be piped without interleaved progress messages.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_ROOT = "mdlinkcheck"
_CONSOLE_FORMAT = "mdlinkcheck: %(levelname)s: %(message)s"
_VERBOSE_FORMAT = "mdlinkcheck: %(levelname)s [%(name)s] %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(threadName)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the ``mdlinkcheck`` logger, or the child logger ``mdlinkcheck.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}" if name else _ROOT)


def _console_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route mdlinkcheck records to stderr and, when given, to ``log_file``.

    ``verbose`` wins over ``quiet``. The file sink always records debug
    output, whatever the console level. Calling this again replaces the
    handlers installed by the previous call.
    """
    console_level = _console_level(verbose, quiet)
    logger = logging.getLogger(_ROOT)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_VERBOSE_FORMAT if verbose else _CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is None:
        logger.setLevel(console_level)
        return logger

    sink = logging.FileHandler(log_file, encoding="utf-8")
    sink.setLevel(logging.DEBUG)
    sink.setFormatter(logging.Formatter(_FILE_FORMAT))
    logger.addHandler(sink)
    logger.setLevel(logging.DEBUG)
    return logger


__all__ = ["configure_logging", "get_logger"]
