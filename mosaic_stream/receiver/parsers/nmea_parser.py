"""Sentence tokenizing and the GGA sentence parser."""

from __future__ import annotations

import datetime as dt
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Protocol, TypeVar

from ..errors import SentenceParseError
from .nmea_types import GpggaRecord, NMEASentence

T = TypeVar("T")

GGA_FIELD_COUNT = 14


def _parse_float(value: str | None) -> Optional[float]:
    """Parse string to float, None on failure."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_int(value: str | None) -> Optional[int]:
    """Parse string to int, None on failure."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_latlon(
    value: str | None,
    direction: str | None,
    *,
    is_lat: bool
) -> Optional[float]:
    """Parse NMEA lat/lon format (DDMM.MMMM or DDDMM.MMMM) to decimal degrees."""
    if not value or not direction:
        return None
    try:
        deg_len = 2 if is_lat else 3
        if len(value) < deg_len:
            return None
        degrees = int(value[:deg_len])
        minutes = float(value[deg_len:])
    except ValueError:
        return None
    decimal = degrees + minutes / 60.0
    if direction.upper() in {"S", "W"}:
        decimal *= -1.0
    return decimal


def _parse_hms(value: str | None) -> Optional[dt.time]:
    """Parse NMEA time format (HHMMSS.sss) to datetime.time."""
    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None
    main, dot, frac = raw.partition(".")
    main = main.rjust(6, "0")
    try:
        hour = int(main[0:2])
        minute = int(main[2:4])
        second = int(main[4:6])
        micro = int((frac[:6] if dot else "0").ljust(6, "0"))
    except ValueError:
        return None
    try:
        return dt.time(hour, minute, second, micro, tzinfo=dt.timezone.utc)
    except ValueError:
        return None


def _checked(
    fields: tuple[str, ...],
    index: int,
    name: str,
    parse: Callable[[str], Optional[T]],
) -> Optional[T]:
    """Parse an optional field: empty gives None, malformed raises."""
    raw = fields[index]
    if not raw:
        return None
    value = parse(raw)
    if value is None:
        raise SentenceParseError(f"Invalid {name} field: {raw!r}")
    return value


def compute_checksum(body: str) -> int:
    """XOR of every character of the sentence body (between "$" and "*")."""
    checksum = 0
    for char in body:
        checksum ^= ord(char)
    return checksum


def validate_checksum(sentence: NMEASentence) -> bool:
    """Check the ``*hh`` suffix of a tokenized sentence."""
    if sentence.checksum is None:
        return False
    try:
        expected = int(sentence.checksum[:2], 16)
    except ValueError:
        return False
    return compute_checksum(sentence.body) == expected


def tokenize_sentence(text: str) -> NMEASentence:
    """Split ``$KEYWORD,f1,...,fn*hh`` into keyword, fields and checksum.

    Empty fields are kept. A trailing CR LF is ignored.
    """
    text = text.rstrip("\r\n")
    body, star, checksum = text.partition("*")
    tokens = body.split(",")
    return NMEASentence(
        keyword=tokens[0],
        fields=tuple(tokens[1:]),
        checksum=checksum.strip() if star else None,
    )


class SentenceParser(Protocol):
    """Turns a tokenized sentence into a record, raising SentenceParseError."""

    def parse(self, sentence: NMEASentence) -> object:
        ...


class GgaParser:
    """Parser for GGA (global positioning system fix data) sentences."""

    def __init__(self, validate_checksums: bool = True):
        self._validate_checksums = validate_checksums

    def parse(self, sentence: NMEASentence) -> GpggaRecord:
        if sentence.sentence_type != "GGA":
            raise SentenceParseError(f"{sentence.keyword} is not a GGA sentence")
        if self._validate_checksums and sentence.checksum is not None:
            if not validate_checksum(sentence):
                raise SentenceParseError(
                    f"Checksum mismatch in {sentence.keyword}: expected "
                    f"{compute_checksum(sentence.body):02X}, got {sentence.checksum}"
                )

        fields = sentence.fields
        if len(fields) < GGA_FIELD_COUNT:
            raise SentenceParseError(
                f"{sentence.keyword} has {len(fields)} fields, expected {GGA_FIELD_COUNT}"
            )

        fix_quality = _parse_int(fields[5])
        if fix_quality is None:
            raise SentenceParseError(f"Invalid fix quality field: {fields[5]!r}")

        latitude = _checked(fields, 1, "latitude", lambda raw: _parse_latlon(raw, fields[2], is_lat=True))
        longitude = _checked(fields, 3, "longitude", lambda raw: _parse_latlon(raw, fields[4], is_lat=False))

        return GpggaRecord(
            message_id=sentence.keyword,
            utc_time=_checked(fields, 0, "UTC time", _parse_hms),
            latitude=latitude,
            longitude=longitude,
            fix_quality=fix_quality,
            num_satellites=_checked(fields, 6, "satellite count", _parse_int),
            hdop=_checked(fields, 7, "HDOP", _parse_float),
            altitude_m=_checked(fields, 8, "altitude", _parse_float),
            geoid_separation_m=_checked(fields, 10, "geoid separation", _parse_float),
            dgps_age_s=_checked(fields, 12, "DGPS age", _parse_float),
            dgps_station_id=fields[13] or None,
        )


DEFAULT_SENTENCE_PARSERS: Mapping[str, SentenceParser] = MappingProxyType({
    "GGA": GgaParser(),
})


__all__ = [
    "DEFAULT_SENTENCE_PARSERS",
    "GgaParser",
    "SentenceParser",
    "compute_checksum",
    "tokenize_sentence",
    "validate_checksum",
]
