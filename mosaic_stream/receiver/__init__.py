"""mosaic receiver stream decoding.

The decoding core (framing, CRC, dispatch, timestamps) is synchronous and
does no I/O; transports, the session handler and the CSV logger build the
async runtime around it.
"""

from .composite import NavSatFix, PoseWithCovariance
from .config import ReceiverConfig
from .decoder import (
    DISPATCH_TABLE,
    KIND_SPECS,
    DecodeResult,
    DecodeStatus,
    DerivedCache,
    MosaicDecoder,
    SequenceCounters,
)
from .errors import (
    BlockLayoutError,
    DependencyUnavailableError,
    FramingError,
    InsufficientDataError,
    MosaicStreamError,
    SentenceParseError,
)
from .framing import ByteWindow, Located, LocateStatus, MessageIdentity, Protocol
from .record_types import RecordHeader, RecordKind, record_fields
from .timestamp import Timestamp, timestamp_from_tow, timestamp_from_utc_time

__all__ = [
    "DISPATCH_TABLE",
    "KIND_SPECS",
    "BlockLayoutError",
    "ByteWindow",
    "DecodeResult",
    "DecodeStatus",
    "DependencyUnavailableError",
    "DerivedCache",
    "FramingError",
    "InsufficientDataError",
    "LocateStatus",
    "Located",
    "MessageIdentity",
    "MosaicDecoder",
    "MosaicStreamError",
    "NavSatFix",
    "PoseWithCovariance",
    "Protocol",
    "ReceiverConfig",
    "RecordHeader",
    "RecordKind",
    "SentenceParseError",
    "SequenceCounters",
    "Timestamp",
    "record_fields",
    "timestamp_from_tow",
    "timestamp_from_utc_time",
]
