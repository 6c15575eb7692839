"""
Logging configuration.

Configures the standard library logging tree once per process and hands
out module loggers.
"""

import logging
import sys

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_configured = False


def init_logging(level: str | int = "INFO") -> None:
    """
    Initialize application logging.

    Safe to call more than once; only the first call installs the handler,
    later calls only adjust the level.

    Args:
        level: Log level name or number.
    """
    global _configured

    root = logging.getLogger("chirp")
    root.setLevel(level if isinstance(level, int) else level.upper())

    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the application namespace.

    Args:
        name: Module name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    if not name.startswith("chirp"):
        name = f"chirp.{name}"
    return logging.getLogger(name.replace("chirp_", "chirp.", 1))
