"""ASCII sentence and command reply data types."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Optional

from ..record_types import RecordHeader


@dataclass(frozen=True, slots=True)
class NMEASentence:
    """A sentence split into its keyword and comma-separated fields.

    ``fields`` keeps empty entries, so field positions match the sentence
    definition. ``checksum`` is the hex text after ``*``, if any.
    """

    keyword: str
    fields: tuple[str, ...]
    checksum: Optional[str] = None

    @property
    def body(self) -> str:
        """Sentence text between ``$`` and ``*``, the range the checksum covers."""
        return ",".join((self.keyword, *self.fields))[1:]

    @property
    def talker(self) -> str:
        """Two-letter talker ID ("GP", "GN", ...), or "P" for proprietary sentences."""
        if self.keyword.startswith("$P"):
            return "P"
        return self.keyword[1:3]

    @property
    def sentence_type(self) -> str:
        """Sentence formatter, e.g. "GGA" for "$GPGGA"."""
        if self.keyword.startswith("$P"):
            return self.keyword[2:]
        return self.keyword[3:]


@dataclass(slots=True)
class GpggaRecord:
    """GGA fix data. Angles are decimal degrees, distances metres."""

    message_id: str
    utc_time: Optional[dt.time]
    latitude: Optional[float]
    longitude: Optional[float]
    fix_quality: int
    num_satellites: Optional[int]
    hdop: Optional[float]
    altitude_m: Optional[float]
    geoid_separation_m: Optional[float]
    dgps_age_s: Optional[float]
    dgps_station_id: Optional[str]
    meta: Optional[RecordHeader] = field(default=None, kw_only=True)

    @property
    def has_fix(self) -> bool:
        return self.fix_quality > 0 and self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class CommandResponse:
    """A reply line to a command sent to the receiver."""

    marker: str
    text: str
    meta: Optional[RecordHeader] = field(default=None, kw_only=True)

    @property
    def is_error(self) -> bool:
        # "$R?" answers commands the receiver rejected
        return self.marker == "$R?"


__all__ = ["CommandResponse", "GpggaRecord", "NMEASentence"]
