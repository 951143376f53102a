"""Component-tagged loggers for the mosaic_stream package."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional, Tuple

ROOT_LOGGER_NAME = "mosaic_stream"


def _qualified_name(name: Optional[str]) -> str:
    if not name:
        return ROOT_LOGGER_NAME
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return name
    return f"{ROOT_LOGGER_NAME}.{name}"


class StructuredLogger(logging.LoggerAdapter):
    """Logger that tags each message with a short component name.

    ``mosaic_stream.receiver.decoder`` logs as ``[decoder] ...``, which
    keeps console output readable when several receivers share a process.
    """

    def __init__(self, logger: logging.Logger, component: Optional[str] = None) -> None:
        super().__init__(logger, {})
        self.component = component or logger.name.rsplit(".", 1)[-1]

    @property
    def name(self) -> str:
        return self.logger.name

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.component}] {msg}", kwargs

    def getChild(self, suffix: str) -> "StructuredLogger":
        return StructuredLogger(self.logger.getChild(suffix), f"{self.component}.{suffix}")


def get_module_logger(name: Optional[str] = None) -> StructuredLogger:
    """Component-tagged logger under the ``mosaic_stream`` namespace."""
    return StructuredLogger(logging.getLogger(_qualified_name(name)))


__all__ = ["ROOT_LOGGER_NAME", "StructuredLogger", "get_module_logger"]
