"""Message framing for the multiplexed mosaic receiver stream.

The receiver interleaves three formats on one byte stream, all starting
with ``$``:

* ``$@`` SBF binary blocks, framed by the length field of their header,
* ``$G`` / ``$P`` NMEA sentences, terminated by CR LF,
* ``$R`` replies to receiver commands, terminated by CR LF.

Everything here is a pure read over a :class:`ByteWindow`: nothing is
copied out of the buffer and nothing past the window end is touched.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from .constants import (
    CRLF,
    DEFAULT_MAX_ASCII_LENGTH,
    DEFAULT_MAX_BLOCK_LENGTH,
    NMEA_SYNC_BYTES_2,
    RESPONSE_SYNC_BYTE_2,
    SBF_BLOCK_NUMBER_MASK,
    SBF_HEADER_SIZE,
    SBF_LENGTH_ALIGNMENT,
    SBF_REVISION_SHIFT,
    SBF_SYNC_BYTE_2,
    SYNC_BYTE,
)
from .errors import FramingError, InsufficientDataError

_SYNC = bytes([SYNC_BYTE])
_SECOND_SYNC_BYTES = frozenset((SBF_SYNC_BYTE_2, RESPONSE_SYNC_BYTE_2, *NMEA_SYNC_BYTES_2))
_HEADER = struct.Struct("<2sHHH")


class Protocol(Enum):
    """Protocol family of a framed message."""

    SBF = "sbf"
    NMEA = "nmea"
    RESPONSE = "response"


@dataclass(frozen=True, slots=True)
class MessageIdentity:
    """Protocol plus identity key: SBF block number or ASCII keyword."""

    protocol: Protocol
    key: Union[int, str]

    @classmethod
    def sbf(cls, block_number: int) -> "MessageIdentity":
        return cls(Protocol.SBF, block_number)

    @classmethod
    def nmea(cls, keyword: str) -> "MessageIdentity":
        return cls(Protocol.NMEA, keyword)

    @classmethod
    def response(cls, marker: str) -> "MessageIdentity":
        return cls(Protocol.RESPONSE, marker)

    def __str__(self) -> str:
        return str(self.key)


@dataclass(frozen=True, slots=True)
class ByteWindow:
    """Read-only view ``data[start:end]`` over a receiver buffer.

    Offsets reported by the framing functions are absolute indexes into
    ``data``, so results stay meaningful after the window is advanced.
    """

    data: bytes
    start: int = 0
    end: Optional[int] = field(default=None)

    def __post_init__(self) -> None:
        end = len(self.data) if self.end is None else self.end
        if not 0 <= self.start <= end <= len(self.data):
            raise ValueError(
                f"Invalid window [{self.start}, {end}) over {len(self.data)} bytes"
            )
        object.__setattr__(self, "end", end)

    @classmethod
    def of(cls, data: Union[bytes, bytearray, memoryview]) -> "ByteWindow":
        return cls(bytes(data))

    @property
    def remaining(self) -> int:
        return self.end - self.start

    def __len__(self) -> int:
        return self.remaining

    def __bool__(self) -> bool:
        return self.remaining > 0

    def advance_to(self, offset: int) -> "ByteWindow":
        """Window starting at absolute ``offset``; it can only move forward."""
        if offset < self.start:
            raise ValueError(f"Cannot move window back from {self.start} to {offset}")
        return ByteWindow(self.data, min(offset, self.end), self.end)

    def advance(self, count: int) -> "ByteWindow":
        return self.advance_to(self.start + count)

    def narrow(self, length: int) -> "ByteWindow":
        """Window over the first ``length`` bytes of this one."""
        return ByteWindow(self.data, self.start, min(self.start + length, self.end))

    def view(self) -> memoryview:
        return memoryview(self.data)[self.start:self.end]

    def tail(self) -> bytes:
        return self.data[self.start:self.end]


@dataclass(frozen=True, slots=True)
class SbfHeader:
    """The 8-byte SBF block header."""

    crc: int
    block_id: int
    length: int

    @classmethod
    def unpack(cls, buffer: Union[bytes, memoryview], offset: int = 0) -> "SbfHeader":
        _sync, crc, block_id, length = _HEADER.unpack_from(buffer, offset)
        return cls(crc=crc, block_id=block_id, length=length)

    @property
    def block_number(self) -> int:
        return self.block_id & SBF_BLOCK_NUMBER_MASK

    @property
    def revision(self) -> int:
        return self.block_id >> SBF_REVISION_SHIFT


class LocateStatus(Enum):
    FOUND = "found"
    NO_MESSAGE = "no_message"
    INCOMPLETE = "incomplete"
    UNFRAMEABLE = "unframeable"


@dataclass(frozen=True, slots=True)
class Located:
    """Outcome of locating the next message in a window.

    ``start`` is the sync position (window end when nothing was found).
    ``end`` is the absolute offset one past the message for FOUND, the
    resynchronization point for UNFRAMEABLE, and ``start`` otherwise.
    """

    status: LocateStatus
    start: int
    end: int
    identity: Optional[MessageIdentity] = None
    reason: str = ""

    @property
    def length(self) -> int:
        return self.end - self.start


def find_sync(window: ByteWindow) -> int:
    """Absolute index of the first sync pattern in ``window``, else ``window.end``.

    A ``$`` in the last byte is not a match since its second byte is not
    in the window yet.
    """
    if window.remaining < 2:
        return window.end
    data = window.data
    pos = window.start
    while True:
        # Searching in [pos, end - 1) keeps the second sync byte in range.
        index = data.find(_SYNC, pos, window.end - 1)
        if index < 0:
            return window.end
        if data[index + 1] in _SECOND_SYNC_BYTES:
            return index
        pos = index + 1


def classify(window: ByteWindow) -> MessageIdentity:
    """Identify the message at ``window.start``, which must be a sync pattern."""
    data = window.data
    start = window.start
    if window.remaining < 2 or data[start] != SYNC_BYTE:
        raise FramingError(f"No sync pattern at offset {start}")

    marker = data[start + 1]
    if marker == SBF_SYNC_BYTE_2:
        if window.remaining < SBF_HEADER_SIZE:
            raise InsufficientDataError("SBF header incomplete")
        return MessageIdentity.sbf(SbfHeader.unpack(data, start).block_number)

    if marker in NMEA_SYNC_BYTES_2:
        comma = data.find(b",", start, window.end)
        terminator = data.find(CRLF, start, window.end)
        if comma >= 0 and (terminator < 0 or comma < terminator):
            end = comma
        elif terminator >= 0:
            # Sentence without fields, e.g. "$PSSN*hh"
            star = data.find(b"*", start, terminator)
            end = star if star >= 0 else terminator
        else:
            raise InsufficientDataError("NMEA keyword incomplete")
        return MessageIdentity.nmea(data[start:end].decode("ascii", errors="replace"))

    if marker == RESPONSE_SYNC_BYTE_2:
        if window.remaining < 3:
            raise InsufficientDataError("Reply marker incomplete")
        return MessageIdentity.response(data[start:start + 3].decode("ascii", errors="replace"))

    raise FramingError(f"Unknown sync pattern {data[start:start + 2]!r} at offset {start}")


def resolve_length(
    window: ByteWindow,
    identity: MessageIdentity,
    *,
    max_block_length: int = DEFAULT_MAX_BLOCK_LENGTH,
    max_ascii_length: int = DEFAULT_MAX_ASCII_LENGTH,
) -> int:
    """Byte length of the message at ``window.start``, header and terminator included."""
    if identity.protocol is Protocol.SBF:
        if window.remaining < SBF_HEADER_SIZE:
            raise InsufficientDataError("SBF header incomplete")
        length = SbfHeader.unpack(window.data, window.start).length
        if length < SBF_HEADER_SIZE or length % SBF_LENGTH_ALIGNMENT:
            raise FramingError(f"SBF block {identity} has invalid length {length}")
        if length > max_block_length:
            raise FramingError(
                f"SBF block {identity} length {length} exceeds limit of {max_block_length}"
            )
        if length > window.remaining:
            raise InsufficientDataError(
                f"SBF block {identity} needs {length} bytes, {window.remaining} available"
            )
        return length

    terminator = window.data.find(CRLF, window.start + 2, window.end)
    if terminator < 0:
        if window.remaining >= max_ascii_length:
            raise FramingError(f"No line terminator within {max_ascii_length} bytes")
        raise InsufficientDataError("Line terminator not received yet")
    return terminator + len(CRLF) - window.start


def locate(
    window: ByteWindow,
    *,
    max_block_length: int = DEFAULT_MAX_BLOCK_LENGTH,
    max_ascii_length: int = DEFAULT_MAX_ASCII_LENGTH,
) -> Located:
    """Find, classify and frame the next message in ``window``."""
    start = find_sync(window)
    if start >= window.end:
        return Located(LocateStatus.NO_MESSAGE, window.end, window.end)

    at_sync = window.advance_to(start)
    identity: Optional[MessageIdentity] = None
    try:
        identity = classify(at_sync)
        length = resolve_length(
            at_sync,
            identity,
            max_block_length=max_block_length,
            max_ascii_length=max_ascii_length,
        )
    except InsufficientDataError as exc:
        return Located(LocateStatus.INCOMPLETE, start, start, identity, str(exc))
    except FramingError as exc:
        return Located(LocateStatus.UNFRAMEABLE, start, start + 1, identity, str(exc))
    return Located(LocateStatus.FOUND, start, start + length, identity)


__all__ = [
    "ByteWindow",
    "LocateStatus",
    "Located",
    "MessageIdentity",
    "Protocol",
    "SbfHeader",
    "classify",
    "find_sync",
    "locate",
    "resolve_length",
]
