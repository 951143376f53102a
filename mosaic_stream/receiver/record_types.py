"""Record kinds and the header stamped on every decoded record."""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import Any, Dict

from .timestamp import Timestamp


class RecordKind(Enum):
    """Every kind of record the decoder can output."""

    PVT_CARTESIAN = "PVTCartesian"
    PVT_GEODETIC = "PVTGeodetic"
    POS_COV_GEODETIC = "PosCovGeodetic"
    ATT_EULER = "AttEuler"
    ATT_COV_EULER = "AttCovEuler"
    GPGGA = "GPGGA"
    NAVSATFIX = "NavSatFix"
    POSE_WITH_COVARIANCE = "PoseWithCovariance"
    RESPONSE = "Response"

    @classmethod
    def from_name(cls, name: str) -> "RecordKind":
        """Look a kind up by its value or member name, case-insensitively."""
        lowered = name.strip().lower()
        for kind in cls:
            if kind.value.lower() == lowered or kind.name.lower() == lowered:
                return kind
        raise ValueError(f"Unknown record kind '{name}'")


@dataclass(frozen=True, slots=True)
class RecordHeader:
    """Output numbering, time and correlation tag of a decoded record."""

    sequence: int
    stamp: Timestamp
    frame_id: str


_SKIPPED_FIELDS = ("block", "meta")


def _plain(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (dt.time, dt.datetime)):
        return value.isoformat()
    if isinstance(value, tuple):
        return [_plain(item) for item in value]
    return value


def record_fields(record: Any) -> Dict[str, Any]:
    """JSON-ready field values of a decoded record, without its headers.

    NaN becomes None and times become ISO 8601 strings.
    """
    if not is_dataclass(record):
        raise TypeError(f"{type(record).__name__} is not a record")
    return {
        f.name: _plain(getattr(record, f.name))
        for f in fields(record)
        if f.name not in _SKIPPED_FIELDS
    }


__all__ = ["RecordHeader", "RecordKind", "record_fields"]
