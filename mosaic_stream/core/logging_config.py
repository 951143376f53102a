"""Root logging setup for the command line entry point.

Logs go to stderr (and optionally a rotating file) so stdout stays free
for decoded records.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable, List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 500 * 1024
LOG_FILE_BACKUPS = 2

_installed: List[logging.Handler] = []


def _level_number(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level '{level}'")
    return number


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
    quiet_loggers: Iterable[str] = ("asyncio", "serial"),
) -> None:
    """Install stderr and file handlers on the root logger.

    Calling it again replaces the handlers installed by the previous call
    and leaves handlers added by other code in place.
    """
    number = _level_number(level)
    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATEFMT)
    if console:
        _installed.append(logging.StreamHandler(sys.stderr))
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _installed.append(
            RotatingFileHandler(
                path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8"
            )
        )

    for handler in _installed:
        handler.setFormatter(formatter)
        handler.setLevel(number)
        root.addHandler(handler)
    root.setLevel(number)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(number, logging.WARNING))


__all__ = ["LOG_DATEFMT", "LOG_FORMAT", "configure_logging"]
