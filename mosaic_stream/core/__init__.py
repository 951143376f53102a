"""Shared infrastructure: logging, configuration and connection helpers."""

from .config_loader import ConfigLoader
from .logging_config import configure_logging
from .logging_utils import StructuredLogger, get_module_logger

__all__ = [
    "ConfigLoader",
    "StructuredLogger",
    "configure_logging",
    "get_module_logger",
]
