"""Structural fields decoded from device frames."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..utils.geo import distance_meters


@dataclass
class LoginRequest:
    """Login (0x01) frame: who the device is."""

    device_id: str
    serial: int

    def to_dict(self) -> dict:
        return {"device_id": self.device_id, "serial": self.serial}


@dataclass
class LocationFix:
    """Position report from a location frame (0x12 / 0x22)."""

    timestamp: datetime
    satellites: int
    latitude: float
    longitude: float
    speed_kmh: int
    course: int
    positioned: bool
    realtime: bool
    serial: int

    @property
    def point(self) -> tuple[float, float]:
        return self.latitude, self.longitude

    def distance_to(self, other: LocationFix) -> float:
        """Distance in meters to another fix."""
        return distance_meters(self.point, other.point)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "satellites": self.satellites,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "speed_kmh": self.speed_kmh,
            "course": self.course,
            "positioned": self.positioned,
            "realtime": self.realtime,
            "serial": self.serial,
        }
