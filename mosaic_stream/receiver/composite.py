"""Records synthesized from the latest cached SBF blocks.

Covariances are row-major. NavSatFix uses the ENU ordering (longitude,
latitude, height) of ``sensor_msgs/NavSatFix``; PoseWithCovariance adds the
attitude block in roll, pitch, heading order.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .constants import (
    FLOAT_DO_NOT_USE,
    PVT_MODE_DIFFERENTIAL,
    PVT_MODE_FIXED_LOCATION,
    PVT_MODE_MOVING_BASE_RTK_FIXED,
    PVT_MODE_MOVING_BASE_RTK_FLOAT,
    PVT_MODE_NO_PVT,
    PVT_MODE_PPP,
    PVT_MODE_RTK_FIXED,
    PVT_MODE_RTK_FLOAT,
    PVT_MODE_SBAS,
    PVT_MODE_STAND_ALONE,
)
from .parsers.sbf_blocks import AttCovEuler, AttEuler, PosCovGeodetic, PVTGeodetic
from .record_types import RecordHeader

STATUS_NO_FIX = -1
STATUS_FIX = 0
STATUS_SBAS_FIX = 1
STATUS_GBAS_FIX = 2

SERVICE_GPS = 1

COVARIANCE_TYPE_UNKNOWN = 0
COVARIANCE_TYPE_KNOWN = 3

_FIX_STATUS = {
    PVT_MODE_NO_PVT: STATUS_NO_FIX,
    PVT_MODE_STAND_ALONE: STATUS_FIX,
    PVT_MODE_FIXED_LOCATION: STATUS_FIX,
    PVT_MODE_PPP: STATUS_FIX,
    PVT_MODE_SBAS: STATUS_SBAS_FIX,
    PVT_MODE_DIFFERENTIAL: STATUS_GBAS_FIX,
    PVT_MODE_RTK_FIXED: STATUS_GBAS_FIX,
    PVT_MODE_RTK_FLOAT: STATUS_GBAS_FIX,
    PVT_MODE_MOVING_BASE_RTK_FIXED: STATUS_GBAS_FIX,
    PVT_MODE_MOVING_BASE_RTK_FLOAT: STATUS_GBAS_FIX,
}

_DEG2_TO_RAD2 = (math.pi / 180.0) ** 2


def _value(raw: float) -> float:
    """Receiver float with the do-not-use marker mapped to NaN."""
    return math.nan if raw == FLOAT_DO_NOT_USE else float(raw)


def fix_status(pvt: PVTGeodetic) -> int:
    """NavSatFix status for the solution type of ``pvt``."""
    if pvt.error != 0:
        return STATUS_NO_FIX
    return _FIX_STATUS.get(pvt.pvt_type, STATUS_NO_FIX)


def _position_covariance(cov: PosCovGeodetic) -> Tuple[float, ...]:
    lonlon = _value(cov.cov_lonlon)
    latlat = _value(cov.cov_latlat)
    hgthgt = _value(cov.cov_hgthgt)
    latlon = _value(cov.cov_latlon)
    lonhgt = _value(cov.cov_lonhgt)
    lathgt = _value(cov.cov_lathgt)
    return (
        lonlon, latlon, lonhgt,
        latlon, latlat, lathgt,
        lonhgt, lathgt, hgthgt,
    )


@dataclass(slots=True)
class NavSatFix:
    """Position fix in degrees and metres with its covariance in m^2."""

    latitude: float
    longitude: float
    altitude: float
    status: int
    position_covariance: Tuple[float, ...]
    service: int = SERVICE_GPS
    position_covariance_type: int = COVARIANCE_TYPE_KNOWN
    meta: Optional[RecordHeader] = field(default=None, kw_only=True)


@dataclass(slots=True)
class PoseWithCovariance:
    """Geodetic position plus attitude, with a 6x6 covariance.

    Angles are radians; heading is clockwise from north. The covariance
    rows are longitude, latitude, height, roll, pitch, heading.
    """

    latitude: float
    longitude: float
    altitude: float
    roll: float
    pitch: float
    heading: float
    covariance: Tuple[float, ...]
    meta: Optional[RecordHeader] = field(default=None, kw_only=True)

    def covariance_at(self, row: int, col: int) -> float:
        return self.covariance[row * 6 + col]


def build_navsatfix(pvt: PVTGeodetic, cov: PosCovGeodetic) -> NavSatFix:
    return NavSatFix(
        latitude=pvt.latitude_deg,
        longitude=pvt.longitude_deg,
        altitude=_value(pvt.height),
        status=fix_status(pvt),
        position_covariance=_position_covariance(cov),
    )


def build_pose(
    pvt: PVTGeodetic,
    cov: PosCovGeodetic,
    att: AttEuler,
    att_cov: AttCovEuler,
) -> PoseWithCovariance:
    position = _position_covariance(cov)
    rollroll = _value(att_cov.cov_rollroll) * _DEG2_TO_RAD2
    pitchpitch = _value(att_cov.cov_pitchpitch) * _DEG2_TO_RAD2
    headhead = _value(att_cov.cov_headhead) * _DEG2_TO_RAD2
    pitchroll = _value(att_cov.cov_pitchroll) * _DEG2_TO_RAD2
    headroll = _value(att_cov.cov_headroll) * _DEG2_TO_RAD2
    headpitch = _value(att_cov.cov_headpitch) * _DEG2_TO_RAD2
    attitude = (
        (rollroll, pitchroll, headroll),
        (pitchroll, pitchpitch, headpitch),
        (headroll, headpitch, headhead),
    )

    covariance = []
    for row in range(6):
        for col in range(6):
            if row < 3 and col < 3:
                covariance.append(position[row * 3 + col])
            elif row >= 3 and col >= 3:
                covariance.append(attitude[row - 3][col - 3])
            else:
                # position and attitude are estimated separately
                covariance.append(0.0)

    return PoseWithCovariance(
        latitude=pvt.latitude_deg,
        longitude=pvt.longitude_deg,
        altitude=_value(pvt.height),
        roll=math.radians(_value(att.roll)),
        pitch=math.radians(_value(att.pitch)),
        heading=math.radians(_value(att.heading)),
        covariance=tuple(covariance),
    )


__all__ = [
    "NavSatFix",
    "PoseWithCovariance",
    "build_navsatfix",
    "build_pose",
    "fix_status",
]
