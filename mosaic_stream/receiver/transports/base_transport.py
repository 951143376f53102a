"""
Base Transport

Abstract base class for the read-only byte sources a receiver session
decodes from. Implementations include the serial port and capture files.
"""

from abc import ABC, abstractmethod
from typing import Optional


class BaseReadOnlyTransport(ABC):
    """
    Abstract base class for read-only receiver transports.

    Transports hand out raw byte chunks with no alignment to message
    boundaries; reassembly is the decoder's job.
    """

    def __init__(self):
        """Initialize the transport."""
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if the transport is connected."""
        return self._connected

    @property
    def exhausted(self) -> bool:
        """True once a finite source has no more data to give."""
        return False

    @abstractmethod
    async def connect(self) -> bool:
        """
        Open the byte source.

        Returns:
            True if connection was successful
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """
        Close the byte source.
        """
        ...

    @abstractmethod
    async def read_chunk(self, timeout: float = 1.0) -> Optional[bytes]:
        """
        Read the next chunk of bytes.

        Args:
            timeout: Maximum time to wait for data

        Returns:
            The bytes read, or None on timeout, EOF or error
        """
        ...

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()
        return False
