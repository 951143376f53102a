"""Serial port transport for mosaic receivers.

SBF blocks and ASCII lines share the port, so reads return raw chunks of
whatever has arrived; framing is left to the decoder.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Optional

import serial
import serial_asyncio

from ...core.logging_utils import get_module_logger
from ..constants import DEFAULT_BAUD_RATE, DEFAULT_READ_SIZE
from .base_transport import BaseReadOnlyTransport

logger = get_module_logger(__name__)


class SerialTransport(BaseReadOnlyTransport):
    """Reads raw chunks from a receiver on a USB or UART serial port.

    Example:
        async with SerialTransport("/dev/ttyACM0", 115200) as transport:
            chunk = await transport.read_chunk()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUD_RATE,
        read_size: int = DEFAULT_READ_SIZE,
    ):
        super().__init__()
        self.port = port
        self.baudrate = baudrate
        self.read_size = read_size
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._last_error: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self._connected and self._reader is not None

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def _fail(self, action: str, exc: BaseException) -> None:
        self._last_error = str(exc)
        logger.warning("%s %s failed: %s", action, self.port, exc)

    async def connect(self) -> bool:
        if self.is_connected:
            return True
        try:
            self._reader, self._writer = await serial_asyncio.open_serial_connection(
                url=self.port,
                baudrate=self.baudrate,
            )
        except (serial.SerialException, OSError) as exc:
            self._connected = False
            self._fail("Opening", exc)
            return False

        self._connected = True
        self._last_error = None
        logger.info("Opened %s at %d baud", self.port, self.baudrate)
        return True

    async def disconnect(self) -> None:
        writer, self._writer, self._reader = self._writer, None, None
        self._connected = False
        if writer is None:
            return

        writer.close()
        with contextlib.suppress(asyncio.TimeoutError, serial.SerialException, OSError):
            await asyncio.wait_for(writer.wait_closed(), timeout=1.0)
        logger.info("Closed %s", self.port)

    async def read_chunk(self, timeout: float = 1.0) -> Optional[bytes]:
        """Up to ``read_size`` bytes, or None on timeout or error.

        End of stream marks the transport disconnected so the handler
        reopens it.
        """
        if not self.is_connected:
            return None
        try:
            chunk = await asyncio.wait_for(self._reader.read(self.read_size), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        except (serial.SerialException, OSError) as exc:
            self._connected = False
            self._fail("Reading", exc)
            return None

        if not chunk:
            self._connected = False
            self._last_error = "Stream ended (EOF)"
            logger.warning("End of stream on %s", self.port)
            return None
        return chunk

    async def write(self, data: bytes) -> bool:
        """Send a receiver command, e.g. ``b"grc\\r\\n"``."""
        if not self.is_connected or self._writer is None:
            logger.error("Cannot send to %s: not open", self.port)
            return False
        try:
            self._writer.write(data)
            await self._writer.drain()
        except (serial.SerialException, OSError) as exc:
            self._fail("Writing to", exc)
            return False
        return True


__all__ = ["SerialTransport"]
