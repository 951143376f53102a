"""Replay of a recorded receiver capture file."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import BinaryIO, Optional

from ...core.logging_utils import get_module_logger
from ..constants import DEFAULT_READ_SIZE
from .base_transport import BaseReadOnlyTransport

logger = get_module_logger(__name__)


class FileTransport(BaseReadOnlyTransport):
    """Reads a capture file in fixed-size chunks.

    Chunk boundaries fall anywhere, as they do on a live port. Once the
    file is exhausted ``read_chunk`` returns None and ``exhausted`` is set.
    """

    def __init__(self, path: Path, read_size: int = DEFAULT_READ_SIZE, pace_s: float = 0.0):
        super().__init__()
        self.path = Path(path)
        self.read_size = read_size
        self.pace_s = pace_s
        self._handle: Optional[BinaryIO] = None
        self._exhausted = False
        self.bytes_read = 0

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    async def connect(self) -> bool:
        if self._handle is not None:
            return True
        try:
            self._handle = self.path.open("rb")
        except OSError as exc:
            logger.error("Cannot open capture %s: %s", self.path, exc)
            return False
        self._connected = True
        self._exhausted = False
        self.bytes_read = 0
        logger.info("Replaying capture %s", self.path)
        return True

    async def disconnect(self) -> None:
        handle = self._handle
        self._handle = None
        self._connected = False
        if handle is not None:
            handle.close()

    async def read_chunk(self, timeout: float = 1.0) -> Optional[bytes]:
        if self._handle is None or self._exhausted:
            return None
        if self.pace_s:
            await asyncio.sleep(self.pace_s)
        chunk = self._handle.read(self.read_size)
        if not chunk:
            self._exhausted = True
            logger.info("Capture %s exhausted after %d bytes", self.path, self.bytes_read)
            return None
        self.bytes_read += len(chunk)
        return chunk
