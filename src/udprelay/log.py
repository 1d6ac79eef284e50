"""Console logging setup for the ``udprelay`` logger namespace.

The library only creates named loggers; handlers are installed by the
application, for example the command line front end, via
``configure_logging``.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import TextIO

RESET = "\033[0m"
DIM = "\033[2m"
BLUE = "\033[34m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[35m",
    logging.INFO: "\033[36m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[1;31m",
    logging.CRITICAL: "\033[1;31m",
}

_ROOT = "udprelay"


class ColorFormatter(logging.Formatter):
    def __init__(self, *, colors: bool = True) -> None:
        super().__init__()
        self._colors = colors

    def _color(self, text: str, code: str) -> str:
        if not self._colors:
            return text
        return f"{code}{text}{RESET}"

    def format(self, record: logging.LogRecord) -> str:
        ts = time.strftime("%H:%M:%S", time.localtime(record.created))
        ts = f"{ts}.{int(record.msecs):03d}"
        level = f"[{record.levelname}]"
        line = (
            f"{self._color(ts, DIM)} "
            f"{self._color(level, LEVEL_COLORS.get(record.levelno, ''))} "
            f"{self._color(record.name, BLUE)} "
            f"{record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    level: str | int = logging.INFO,
    *,
    stream: TextIO | None = None,
    colors: bool | None = None,
) -> logging.Logger:
    """Attach a console handler to the ``udprelay`` logger.

    Calling it again replaces the handler installed by a previous call.

    Parameters
    ----------
    level : str | int
        Level name (``"DEBUG"``, ``"INFO"``, ...) or numeric level.
    stream : TextIO | None
        Output stream. Defaults to ``sys.stderr``.
    colors : bool | None
        Force ANSI colors on or off. Defaults to whether *stream* is a TTY.

    Returns
    -------
    logging.Logger
        The configured ``udprelay`` logger.
    """
    out = stream or sys.stderr
    if colors is None:
        colors = out.isatty()
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger(_ROOT)
    for existing in list(logger.handlers):
        if getattr(existing, "_udprelay", False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(out)
    handler.setFormatter(ColorFormatter(colors=colors))
    handler._udprelay = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
