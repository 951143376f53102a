"""Unit tests for the SBF CRC."""

import struct

from mosaic_stream.receiver.crc import compute_crc16, crc_is_valid
from mosaic_stream.receiver.parsers.sbf_blocks import encode_block


class TestComputeCrc16:
    """Test the CRC-16-CCITT routine."""

    def test_check_value(self):
        """Test the standard check string (XMODEM variant, initial value 0)."""
        assert compute_crc16(b"123456789") == 0x31C3

    def test_empty_input(self):
        """Test that no input leaves the initial value."""
        assert compute_crc16(b"") == 0
        assert compute_crc16(b"", initial=0xFFFF) == 0xFFFF

    def test_accepts_memoryview(self):
        """Test that memoryview slices give the same result as bytes."""
        data = b"\x01\x02\x03\x04\x05"
        assert compute_crc16(memoryview(data)[1:]) == compute_crc16(data[1:])

    def test_incremental(self):
        """Test that feeding the CRC back in continues the computation."""
        head, tail = b"12345", b"6789"
        assert compute_crc16(tail, initial=compute_crc16(head)) == 0x31C3


class TestCrcIsValid:
    """Test CRC validation of complete blocks."""

    def test_valid_block(self):
        """Test that an encoded block validates."""
        block = encode_block(4007, bytes(range(20)))
        assert crc_is_valid(block)

    def test_covers_id_length_and_body(self):
        """Test that the stored CRC is computed over bytes 4 to length."""
        block = encode_block(5906, b"\xaa" * 12)
        (stored,) = struct.unpack_from("<H", block, 2)
        assert stored == compute_crc16(block[4:])

    def test_single_bit_flip_in_body(self):
        """Test that flipping one body bit fails validation."""
        block = bytearray(encode_block(4007, bytes(range(20))))
        block[12] ^= 0x01
        assert not crc_is_valid(bytes(block))

    def test_flipped_crc_field(self):
        """Test that flipping a bit of the CRC field fails validation."""
        block = bytearray(encode_block(4007, bytes(range(20))))
        block[2] ^= 0x80
        assert not crc_is_valid(bytes(block))

    def test_trailing_bytes_ignored(self):
        """Test that only the declared length is checked."""
        block = encode_block(4007, bytes(range(20)))
        assert crc_is_valid(block + b"$GPGGA,...")

    def test_truncated_block(self):
        """Test that a block shorter than its declared length is invalid."""
        block = encode_block(4007, bytes(range(20)))
        assert not crc_is_valid(block[:-4])
        assert not crc_is_valid(block[:6])
