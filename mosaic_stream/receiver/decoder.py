"""Decode dispatcher for the mosaic receiver stream.

``MosaicDecoder.decode`` runs one message through
locate -> validate -> dispatch -> stamp and reports the outcome as a
:class:`DecodeResult`. Errors never escape: every failure is a status
plus the offset from which the caller should resume scanning.

Each decoder owns its sequence counters and the cache of the latest
blocks used to synthesize composite records, so independent streams
need independent decoders.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..core.logging_utils import get_module_logger
from .composite import build_navsatfix, build_pose
from .constants import (
    DEFAULT_FRAME_ID,
    DEFAULT_LEAP_SECONDS,
    DEFAULT_MAX_ASCII_LENGTH,
    DEFAULT_MAX_BLOCK_LENGTH,
    SYNC_BYTE,
)
from .crc import crc_is_valid
from .errors import BlockLayoutError, DependencyUnavailableError, SentenceParseError
from .framing import ByteWindow, Located, LocateStatus, MessageIdentity, Protocol, locate
from .parsers.nmea_parser import DEFAULT_SENTENCE_PARSERS, SentenceParser, tokenize_sentence
from .parsers.nmea_types import CommandResponse
from .parsers.sbf_blocks import SBF_SCHEMAS, SbfRecord, SbfSchema
from .record_types import RecordHeader, RecordKind
from .timestamp import Clock, Timestamp, timestamp_from_tow, timestamp_from_utc_time

logger = get_module_logger(__name__)

# Repeated failures of one kind are logged for the first few occurrences,
# then once every LOG_EVERY_N.
LOG_FIRST_N = 10
LOG_EVERY_N = 100


class DecodeStatus(Enum):
    DECODED = "decoded"
    NEED_MORE_DATA = "need_more_data"
    VALIDATION_FAILED = "validation_failed"
    DECODE_FAILED = "decode_failed"
    NOT_HANDLED = "not_handled"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    NO_MESSAGE = "no_message"


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Outcome of one decode call.

    ``start`` is the absolute offset of the message (or of the window end
    when nothing was found) and ``next_offset`` where scanning resumes.
    """

    status: DecodeStatus
    start: int
    next_offset: int
    identity: Optional[MessageIdentity] = None
    kind: Optional[RecordKind] = None
    record: Any = None
    error: str = ""
    missing: Tuple[RecordKind, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is DecodeStatus.DECODED

    @property
    def consumed(self) -> int:
        return self.next_offset - self.start

    @property
    def sequence(self) -> Optional[int]:
        meta = getattr(self.record, "meta", None)
        return meta.sequence if meta is not None else None

    @property
    def stamp(self) -> Optional[Timestamp]:
        meta = getattr(self.record, "meta", None)
        return meta.stamp if meta is not None else None


class DerivedCache:
    """Latest decoded block of each composable kind."""

    def __init__(self) -> None:
        self._entries: Dict[RecordKind, SbfRecord] = {}

    def update(self, kind: RecordKind, record: SbfRecord) -> None:
        self._entries[kind] = record

    def get(self, kind: RecordKind) -> Optional[SbfRecord]:
        return self._entries.get(kind)

    def require(self, kind: RecordKind, needed: Iterable[RecordKind]) -> List[SbfRecord]:
        """Cached records for ``needed``, in order, or DependencyUnavailableError."""
        needed = tuple(needed)
        missing = tuple(k for k in needed if k not in self._entries)
        if missing:
            raise DependencyUnavailableError(kind.value, tuple(k.value for k in missing))
        return [self._entries[k] for k in needed]

    def __contains__(self, kind: object) -> bool:
        return kind in self._entries

    def clear(self) -> None:
        self._entries.clear()


class SequenceCounters:
    """Per-kind output numbering, starting at 0."""

    def __init__(self) -> None:
        self._counts: Counter[RecordKind] = Counter()

    def next(self, kind: RecordKind) -> int:
        value = self._counts[kind]
        self._counts[kind] = value + 1
        return value

    def peek(self, kind: RecordKind) -> int:
        return self._counts[kind]

    def clear(self) -> None:
        self._counts.clear()


class Family(Enum):
    """How a record kind is produced."""

    DIRECT = "direct"          # SBF block unpacked field by field
    DELEGATED = "delegated"    # ASCII sentence handed to a sentence parser
    COMPOSITE = "composite"    # built from cached blocks
    REPLY = "reply"            # command reply line kept as text


@dataclass(frozen=True)
class KindSpec:
    kind: RecordKind
    family: Family
    schema: Optional[SbfSchema] = None
    cached: bool = False
    requires: Tuple[RecordKind, ...] = ()
    builder: Optional[Callable[..., Any]] = None


_CACHED_KINDS = frozenset((
    RecordKind.PVT_GEODETIC,
    RecordKind.POS_COV_GEODETIC,
    RecordKind.ATT_EULER,
    RecordKind.ATT_COV_EULER,
))


def _build_kind_specs() -> Mapping[RecordKind, KindSpec]:
    specs: Dict[RecordKind, KindSpec] = {}
    for kind, schema in SBF_SCHEMAS.items():
        specs[kind] = KindSpec(kind, Family.DIRECT, schema=schema, cached=kind in _CACHED_KINDS)
    specs[RecordKind.GPGGA] = KindSpec(RecordKind.GPGGA, Family.DELEGATED)
    specs[RecordKind.RESPONSE] = KindSpec(RecordKind.RESPONSE, Family.REPLY)
    specs[RecordKind.NAVSATFIX] = KindSpec(
        RecordKind.NAVSATFIX,
        Family.COMPOSITE,
        requires=(RecordKind.PVT_GEODETIC, RecordKind.POS_COV_GEODETIC),
        builder=build_navsatfix,
    )
    specs[RecordKind.POSE_WITH_COVARIANCE] = KindSpec(
        RecordKind.POSE_WITH_COVARIANCE,
        Family.COMPOSITE,
        requires=(
            RecordKind.PVT_GEODETIC,
            RecordKind.POS_COV_GEODETIC,
            RecordKind.ATT_EULER,
            RecordKind.ATT_COV_EULER,
        ),
        builder=build_pose,
    )
    return MappingProxyType(specs)


GGA_KEYWORDS = ("$GPGGA", "$GNGGA", "$GLGGA", "$GAGGA", "$GBGGA", "$GQGGA")
RESPONSE_MARKERS = ("$R:", "$R;", "$R?", "$R!")


def _build_dispatch_table() -> Mapping[MessageIdentity, RecordKind]:
    table: Dict[MessageIdentity, RecordKind] = {}
    for kind, schema in SBF_SCHEMAS.items():
        table[MessageIdentity.sbf(schema.block_number)] = kind
    for keyword in GGA_KEYWORDS:
        table[MessageIdentity.nmea(keyword)] = RecordKind.GPGGA
    for marker in RESPONSE_MARKERS:
        table[MessageIdentity.response(marker)] = RecordKind.RESPONSE
    return MappingProxyType(table)


KIND_SPECS = _build_kind_specs()
DISPATCH_TABLE = _build_dispatch_table()

COMPOSITE_KINDS = tuple(k for k, spec in KIND_SPECS.items() if spec.family is Family.COMPOSITE)


class MosaicDecoder:
    """Turns a receiver byte stream into stamped records, one message per call."""

    def __init__(
        self,
        frame_id: str = DEFAULT_FRAME_ID,
        *,
        use_gnss_time: bool = True,
        leap_seconds: int = DEFAULT_LEAP_SECONDS,
        max_block_length: int = DEFAULT_MAX_BLOCK_LENGTH,
        max_ascii_length: int = DEFAULT_MAX_ASCII_LENGTH,
        sentence_parsers: Optional[Mapping[str, SentenceParser]] = None,
        clock: Clock = time.time_ns,
    ):
        self.frame_id = frame_id
        self.use_gnss_time = use_gnss_time
        self.leap_seconds = leap_seconds
        self.max_block_length = max_block_length
        self.max_ascii_length = max_ascii_length
        self._sentence_parsers = (
            DEFAULT_SENTENCE_PARSERS if sentence_parsers is None else MappingProxyType(dict(sentence_parsers))
        )
        self._clock = clock
        self._cache = DerivedCache()
        self._counters = SequenceCounters()
        self._failures: Counter[str] = Counter()

    # ------------------------------------------------------------------
    # Public API

    def find_next(self, window: ByteWindow) -> Located:
        """Locate the next message without decoding or consuming anything."""
        return locate(
            window,
            max_block_length=self.max_block_length,
            max_ascii_length=self.max_ascii_length,
        )

    def decode(self, window: ByteWindow, kind: Optional[RecordKind] = None) -> DecodeResult:
        """Decode the next message in ``window``.

        With ``kind`` given, only that kind is decoded: other messages are
        skipped as NOT_HANDLED. A composite ``kind`` is built from the cache
        and leaves the window untouched.
        """
        if kind is not None and KIND_SPECS[kind].family is Family.COMPOSITE:
            return self.synthesize(kind, at=window.start)

        located = self.find_next(window)
        if located.status is LocateStatus.NO_MESSAGE:
            return DecodeResult(DecodeStatus.NO_MESSAGE, located.start, located.end)
        if located.status is LocateStatus.INCOMPLETE:
            return DecodeResult(
                DecodeStatus.NEED_MORE_DATA, located.start, located.start, located.identity,
                error=located.reason,
            )
        if located.status is LocateStatus.UNFRAMEABLE:
            self._warn("unframeable", "Resynchronizing at offset %d: %s", located.start, located.reason)
            return DecodeResult(
                DecodeStatus.VALIDATION_FAILED, located.start, located.end, located.identity,
                error=located.reason,
            )

        identity = located.identity
        message = window.data[located.start:located.end]

        if identity.protocol is Protocol.SBF and not crc_is_valid(message):
            self._warn("crc", "CRC mismatch in SBF block %s at offset %d", identity, located.start)
            return self._result(DecodeStatus.VALIDATION_FAILED, located, error="CRC mismatch")

        record_kind = DISPATCH_TABLE.get(identity)
        if record_kind is None:
            logger.debug("No decoder for %s at offset %d, skipping", identity, located.start)
            return self._result(DecodeStatus.NOT_HANDLED, located, error=f"Unhandled message {identity}")
        if kind is not None and record_kind is not kind:
            return self._result(
                DecodeStatus.NOT_HANDLED, located, record_kind,
                error=f"{record_kind.value} skipped while decoding {kind.value}",
            )

        spec = KIND_SPECS[record_kind]
        if spec.family is Family.DIRECT:
            return self._decode_block(spec, located, message)
        if spec.family is Family.DELEGATED:
            return self._decode_sentence(spec, located, message)
        return self._decode_reply(spec, located, message)

    def synthesize(self, kind: RecordKind, at: int = 0) -> DecodeResult:
        """Build a composite record from the latest cached blocks.

        ``at`` is reported as both start and next offset, since nothing is
        read from the stream.
        """
        spec = KIND_SPECS[kind]
        if spec.family is not Family.COMPOSITE:
            raise ValueError(f"{kind.value} is not a composite record kind")

        try:
            inputs = self._cache.require(kind, spec.requires)
        except DependencyUnavailableError as exc:
            missing = tuple(k for k in spec.requires if k not in self._cache)
            return DecodeResult(
                DecodeStatus.DEPENDENCY_UNAVAILABLE, at, at, kind=kind, error=str(exc), missing=missing,
            )

        record = spec.builder(*inputs)
        pvt = inputs[0]
        record.meta = self._header(kind, self._stamp_tow(pvt.tow, pvt.wnc))
        if record.meta.sequence == 0:
            logger.info("First %s built from cached blocks", kind.value)
        return DecodeResult(DecodeStatus.DECODED, at, at, kind=kind, record=record)

    def decode_all(
        self,
        data: Union[bytes, bytearray, ByteWindow],
        kind: Optional[RecordKind] = None,
        composites: Iterable[RecordKind] = (),
    ) -> Tuple[List[DecodeResult], bytes]:
        """Decode every complete message in ``data``.

        Returns the results in stream order and the unconsumed tail, which
        the caller prepends to its next read. Each kind in ``composites`` is
        synthesized right after every decoded PVTGeodetic block.

        Composite kinds are built from the stream rather than read from it,
        so they go in ``composites``; passing one as ``kind`` is a ValueError.
        """
        if kind is not None and KIND_SPECS[kind].family is Family.COMPOSITE:
            raise ValueError(f"{kind.value} is built from cached blocks; pass it in composites")
        window = data if isinstance(data, ByteWindow) else ByteWindow.of(data)
        composites = tuple(composites)
        results: List[DecodeResult] = []
        leftover = b""

        while window:
            result = self.decode(window, kind)
            if result.status is DecodeStatus.NO_MESSAGE:
                # A "$" in the last byte may start a message split across reads
                if window.data[window.end - 1] == SYNC_BYTE:
                    leftover = window.data[window.end - 1:window.end]
                break
            if result.status is DecodeStatus.NEED_MORE_DATA:
                leftover = window.data[result.start:window.end]
                break
            if result.next_offset <= window.start:
                logger.error("Decoder made no progress at offset %d (%s)", window.start, result.status.value)
                break

            results.append(result)
            if result.ok and result.kind is RecordKind.PVT_GEODETIC:
                for composite in composites:
                    results.append(self.synthesize(composite, at=result.next_offset))
            window = window.advance_to(result.next_offset)

        return results, leftover

    def sequence(self, kind: RecordKind) -> int:
        """Sequence number the next record of ``kind`` will carry."""
        return self._counters.peek(kind)

    def cached(self, kind: RecordKind) -> Optional[SbfRecord]:
        return self._cache.get(kind)

    def reset(self) -> None:
        """Forget cached blocks and restart every sequence at 0."""
        self._cache.clear()
        self._counters.clear()
        self._failures.clear()

    # ------------------------------------------------------------------
    # Per-family decoding

    def _decode_block(self, spec: KindSpec, located: Located, message: bytes) -> DecodeResult:
        try:
            record = spec.schema.unpack(message)
        except BlockLayoutError as exc:
            self._warn("layout", "%s", exc)
            return self._result(DecodeStatus.DECODE_FAILED, located, spec.kind, error=str(exc))

        record.meta = self._header(spec.kind, self._stamp_tow(record.tow, record.wnc))
        if spec.cached:
            self._cache.update(spec.kind, record)
        return self._result(DecodeStatus.DECODED, located, spec.kind, record=record)

    def _decode_sentence(self, spec: KindSpec, located: Located, message: bytes) -> DecodeResult:
        try:
            sentence = tokenize_sentence(message.decode("ascii"))
        except UnicodeDecodeError:
            self._warn("sentence", "Non-ASCII bytes in %s at offset %d", located.identity, located.start)
            return self._result(DecodeStatus.DECODE_FAILED, located, spec.kind, error="Non-ASCII sentence")

        parser = self._sentence_parsers.get(sentence.sentence_type)
        if parser is None:
            logger.debug("No sentence parser for %s", sentence.keyword)
            return self._result(
                DecodeStatus.NOT_HANDLED, located, spec.kind,
                error=f"No parser for {sentence.sentence_type}",
            )

        try:
            record = parser.parse(sentence)
        except SentenceParseError as exc:
            self._warn("sentence", "Failed to parse %s: %s", sentence.keyword, exc)
            return self._result(DecodeStatus.DECODE_FAILED, located, spec.kind, error=str(exc))

        stamp = timestamp_from_utc_time(
            getattr(record, "utc_time", None), self.use_gnss_time, clock=self._clock,
        )
        record.meta = self._header(spec.kind, stamp)
        return self._result(DecodeStatus.DECODED, located, spec.kind, record=record)

    def _decode_reply(self, spec: KindSpec, located: Located, message: bytes) -> DecodeResult:
        text = message.decode("ascii", errors="replace").rstrip("\r\n")
        record = CommandResponse(marker=str(located.identity.key), text=text)
        record.meta = self._header(spec.kind, Timestamp.from_ns(self._clock()))
        if record.is_error:
            logger.warning("Receiver rejected command: %s", text)
        return self._result(DecodeStatus.DECODED, located, spec.kind, record=record)

    # ------------------------------------------------------------------
    # Helpers

    def _stamp_tow(self, tow: int, wnc: Optional[int] = None) -> Timestamp:
        return timestamp_from_tow(
            tow, self.use_gnss_time, wnc=wnc, leap_seconds=self.leap_seconds, clock=self._clock,
        )

    def _header(self, kind: RecordKind, stamp: Timestamp) -> RecordHeader:
        return RecordHeader(sequence=self._counters.next(kind), stamp=stamp, frame_id=self.frame_id)

    @staticmethod
    def _result(
        status: DecodeStatus,
        located: Located,
        kind: Optional[RecordKind] = None,
        *,
        record: Any = None,
        error: str = "",
    ) -> DecodeResult:
        return DecodeResult(
            status, located.start, located.end, located.identity, kind, record, error,
        )

    def _warn(self, category: str, message: str, *args: Any) -> None:
        self._failures[category] += 1
        count = self._failures[category]
        if count <= LOG_FIRST_N or count % LOG_EVERY_N == 0:
            if count > LOG_FIRST_N:
                message = f"{message} ({count} so far)"
            logger.warning(message, *args)


__all__ = [
    "COMPOSITE_KINDS",
    "DISPATCH_TABLE",
    "KIND_SPECS",
    "DecodeResult",
    "DecodeStatus",
    "DerivedCache",
    "Family",
    "KindSpec",
    "MosaicDecoder",
    "SequenceCounters",
]
