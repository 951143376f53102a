"""Framing and decoding of Septentrio mosaic receiver streams."""

from mosaic_stream.receiver import (
    ByteWindow,
    DecodeResult,
    DecodeStatus,
    MosaicDecoder,
    RecordKind,
)

__version__ = "0.1.0"

__all__ = [
    "ByteWindow",
    "DecodeResult",
    "DecodeStatus",
    "MosaicDecoder",
    "RecordKind",
    "__version__",
]
