"""CRC-16-CCITT checksum used by SBF blocks."""

from __future__ import annotations

import binascii
import struct

from .constants import SBF_CRC_OFFSET, SBF_HEADER_SIZE, SBF_ID_OFFSET, SBF_LENGTH_OFFSET


def compute_crc16(data: bytes | memoryview, initial: int = 0) -> int:
    """CRC-16-CCITT (poly 0x1021, MSB first, no final XOR) of ``data``.

    ``binascii.crc_hqx`` implements this variant; SBF starts it at 0.
    """
    return binascii.crc_hqx(data, initial) & 0xFFFF


def crc_is_valid(block: bytes | memoryview) -> bool:
    """Check the CRC of a complete SBF block starting at its sync bytes.

    The CRC covers everything from the ID field to the declared length.
    """
    if len(block) < SBF_HEADER_SIZE:
        return False
    (expected,) = struct.unpack_from("<H", block, SBF_CRC_OFFSET)
    (length,) = struct.unpack_from("<H", block, SBF_LENGTH_OFFSET)
    if length < SBF_HEADER_SIZE or length > len(block):
        return False
    return compute_crc16(block[SBF_ID_OFFSET:length]) == expected


__all__ = ["compute_crc16", "crc_is_valid"]
