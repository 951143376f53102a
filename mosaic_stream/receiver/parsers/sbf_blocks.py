"""SBF block layouts and the records decoded from them.

Each supported block is described by an :class:`SbfSchema`: the block
number plus the ordered ``(field name, struct code)`` pairs of the body
that follows the 8-byte header. Records are filled field by field from
that list, so the record classes are free to order their attributes as
they like.

Layouts follow the mosaic firmware reference guide. Every body starts with
TOW (u4, milliseconds of GPS week) and WNc (u2, GPS week number).
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Type, Union

from ..constants import (
    FLOAT_DO_NOT_USE,
    PVT_MODE_MASK,
    SBF_HEADER_SIZE,
    SBF_LENGTH_ALIGNMENT,
    SBF_REVISION_SHIFT,
)
from ..crc import compute_crc16
from ..errors import BlockLayoutError
from ..framing import SbfHeader
from ..record_types import RecordHeader, RecordKind


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class SbfRecord:
    """Fields common to every SBF block."""

    block: SbfHeader
    tow: int
    wnc: int
    meta: Optional[RecordHeader] = field(default=None, kw_only=True)

    def payload(self) -> Dict[str, Any]:
        """Body fields by name, without the block header and output header."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in ("block", "meta")}


@dataclass(slots=True)
class PVTCartesian(SbfRecord):
    """Position, velocity and time in ECEF (block 4006)."""

    mode: int
    error: int
    x: float
    y: float
    z: float
    undulation: float
    vx: float
    vy: float
    vz: float
    cog: float
    rx_clk_bias: float
    rx_clk_drift: float
    time_system: int
    datum: int
    nr_sv: int
    wa_corr_info: int
    reference_id: int
    mean_corr_age: int
    signal_info: int
    alert_flag: int
    nr_bases: int
    ppp_info: int
    latency: int
    h_accuracy: int
    v_accuracy: int
    misc: int

    @property
    def pvt_type(self) -> int:
        return self.mode & PVT_MODE_MASK


@dataclass(slots=True)
class PVTGeodetic(SbfRecord):
    """Position, velocity and time in geodetic coordinates (block 4007).

    Latitude and longitude are in radians, height in metres above the
    ellipsoid, velocities in m/s (north, east, up).
    """

    mode: int
    error: int
    latitude: float
    longitude: float
    height: float
    undulation: float
    vn: float
    ve: float
    vu: float
    cog: float
    rx_clk_bias: float
    rx_clk_drift: float
    time_system: int
    datum: int
    nr_sv: int
    wa_corr_info: int
    reference_id: int
    mean_corr_age: int
    signal_info: int
    alert_flag: int
    nr_bases: int
    ppp_info: int
    latency: int
    h_accuracy: int
    v_accuracy: int
    misc: int

    @property
    def pvt_type(self) -> int:
        return self.mode & PVT_MODE_MASK

    @property
    def has_position(self) -> bool:
        return self.latitude != FLOAT_DO_NOT_USE and self.longitude != FLOAT_DO_NOT_USE

    @property
    def latitude_deg(self) -> float:
        return math.degrees(self.latitude) if self.has_position else math.nan

    @property
    def longitude_deg(self) -> float:
        return math.degrees(self.longitude) if self.has_position else math.nan


@dataclass(slots=True)
class PosCovGeodetic(SbfRecord):
    """Position and clock-bias covariance in m^2 (block 5906)."""

    mode: int
    error: int
    cov_latlat: float
    cov_lonlon: float
    cov_hgthgt: float
    cov_bb: float
    cov_latlon: float
    cov_lathgt: float
    cov_latb: float
    cov_lonhgt: float
    cov_lonb: float
    cov_hb: float


@dataclass(slots=True)
class AttEuler(SbfRecord):
    """Attitude as heading, pitch and roll in degrees (block 5938)."""

    nr_sv: int
    error: int
    mode: int
    reserved: int
    heading: float
    pitch: float
    roll: float
    pitch_dot: float
    roll_dot: float
    heading_dot: float


@dataclass(slots=True)
class AttCovEuler(SbfRecord):
    """Attitude covariance in deg^2 (block 5939)."""

    reserved: int
    error: int
    cov_headhead: float
    cov_pitchpitch: float
    cov_rollroll: float
    cov_headpitch: float
    cov_headroll: float
    cov_pitchroll: float


# ---------------------------------------------------------------------------
# Layouts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SbfSchema:
    """Fixed layout of one SBF block body."""

    block_number: int
    kind: RecordKind
    record_type: Type[SbfRecord]
    layout: Tuple[Tuple[str, str], ...]
    _struct: struct.Struct = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        codes = "".join(code for _name, code in self.layout)
        object.__setattr__(self, "_struct", struct.Struct("<" + codes))

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _code in self.layout)

    @property
    def min_length(self) -> int:
        """Smallest block length (header included) holding every field."""
        return SBF_HEADER_SIZE + self._struct.size

    def unpack(self, block: Union[bytes, memoryview]) -> SbfRecord:
        """Build a record from a complete block, sync bytes included."""
        header = SbfHeader.unpack(block)
        if header.block_number != self.block_number:
            raise BlockLayoutError(
                f"Block {header.block_number} cannot be decoded as {self.name}"
            )
        if header.length < self.min_length or len(block) < self.min_length:
            raise BlockLayoutError(
                f"{self.name} block of {header.length} bytes is shorter than "
                f"its {self.min_length}-byte layout"
            )
        values = self._struct.unpack_from(block, SBF_HEADER_SIZE)
        return self.record_type(block=header, **dict(zip(self.field_names, values)))

    def encode(self, values: Mapping[str, Any], revision: int = 0) -> bytes:
        """Complete block (sync, CRC, ID, length, body, padding) for ``values``."""
        body = self._struct.pack(*(values[name] for name in self.field_names))
        return encode_block(self.block_number, body, revision=revision)


def encode_block(block_number: int, body: bytes, *, revision: int = 0) -> bytes:
    """Frame ``body`` as an SBF block, padding it to a multiple of four bytes."""
    padding = -(SBF_HEADER_SIZE + len(body)) % SBF_LENGTH_ALIGNMENT
    length = SBF_HEADER_SIZE + len(body) + padding
    block_id = (revision << SBF_REVISION_SHIFT) | block_number
    id_and_length = struct.pack("<HH", block_id, length)
    covered = id_and_length + body + bytes(padding)
    return b"$@" + struct.pack("<H", compute_crc16(covered)) + covered


_PVT_STATUS = (
    ("cog", "f"),
    ("rx_clk_bias", "d"),
    ("rx_clk_drift", "f"),
    ("time_system", "B"),
    ("datum", "B"),
    ("nr_sv", "B"),
    ("wa_corr_info", "B"),
    ("reference_id", "H"),
    ("mean_corr_age", "H"),
    ("signal_info", "I"),
    ("alert_flag", "B"),
    ("nr_bases", "B"),
    ("ppp_info", "H"),
    ("latency", "H"),
    ("h_accuracy", "H"),
    ("v_accuracy", "H"),
    ("misc", "B"),
)
_TIME = (("tow", "I"), ("wnc", "H"))

PVT_CARTESIAN = SbfSchema(
    4006,
    RecordKind.PVT_CARTESIAN,
    PVTCartesian,
    _TIME
    + (("mode", "B"), ("error", "B"), ("x", "d"), ("y", "d"), ("z", "d"))
    + (("undulation", "f"),)
    + (("vx", "f"), ("vy", "f"), ("vz", "f"))
    + _PVT_STATUS,
)

PVT_GEODETIC = SbfSchema(
    4007,
    RecordKind.PVT_GEODETIC,
    PVTGeodetic,
    _TIME
    + (("mode", "B"), ("error", "B"), ("latitude", "d"), ("longitude", "d"), ("height", "d"))
    + (("undulation", "f"),)
    + (("vn", "f"), ("ve", "f"), ("vu", "f"))
    + _PVT_STATUS,
)

POS_COV_GEODETIC = SbfSchema(
    5906,
    RecordKind.POS_COV_GEODETIC,
    PosCovGeodetic,
    _TIME
    + (
        ("mode", "B"),
        ("error", "B"),
        ("cov_latlat", "f"),
        ("cov_lonlon", "f"),
        ("cov_hgthgt", "f"),
        ("cov_bb", "f"),
        ("cov_latlon", "f"),
        ("cov_lathgt", "f"),
        ("cov_latb", "f"),
        ("cov_lonhgt", "f"),
        ("cov_lonb", "f"),
        ("cov_hb", "f"),
    ),
)

ATT_EULER = SbfSchema(
    5938,
    RecordKind.ATT_EULER,
    AttEuler,
    _TIME
    + (
        ("nr_sv", "B"),
        ("error", "B"),
        ("mode", "H"),
        ("reserved", "H"),
        ("heading", "f"),
        ("pitch", "f"),
        ("roll", "f"),
        ("pitch_dot", "f"),
        ("roll_dot", "f"),
        ("heading_dot", "f"),
    ),
)

ATT_COV_EULER = SbfSchema(
    5939,
    RecordKind.ATT_COV_EULER,
    AttCovEuler,
    _TIME
    + (
        ("reserved", "B"),
        ("error", "B"),
        ("cov_headhead", "f"),
        ("cov_pitchpitch", "f"),
        ("cov_rollroll", "f"),
        ("cov_headpitch", "f"),
        ("cov_headroll", "f"),
        ("cov_pitchroll", "f"),
    ),
)

SBF_SCHEMAS: Mapping[RecordKind, SbfSchema] = MappingProxyType({
    schema.kind: schema
    for schema in (PVT_CARTESIAN, PVT_GEODETIC, POS_COV_GEODETIC, ATT_EULER, ATT_COV_EULER)
})


__all__ = [
    "ATT_COV_EULER",
    "ATT_EULER",
    "AttCovEuler",
    "AttEuler",
    "POS_COV_GEODETIC",
    "PVT_CARTESIAN",
    "PVT_GEODETIC",
    "PVTCartesian",
    "PVTGeodetic",
    "PosCovGeodetic",
    "SBF_SCHEMAS",
    "SbfRecord",
    "SbfSchema",
    "encode_block",
]
