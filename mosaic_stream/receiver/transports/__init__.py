"""Byte sources for receiver sessions."""

from .base_transport import BaseReadOnlyTransport
from .file_transport import FileTransport
from .serial_transport import SerialTransport

__all__ = [
    "BaseReadOnlyTransport",
    "FileTransport",
    "SerialTransport",
]
