"""Field decoders for validated device frames."""

from __future__ import annotations

import math
from datetime import datetime, timezone

from ..models.device import LocationFix, LoginRequest
from .catalog import LOCATION_OPCODES, FrameKind, Opcode
from .framing import MIN_FRAME_SIZE, Frame, parse_frame

DEVICE_ID_SIZE = 8
DEVICE_ID_LENGTH = 15
COORDINATE_PRECISION = 6

# Location content: date(6) + gps info(1) + lat(4) + lon(4) + speed(1) + course/status(2)
_LOCATION_MIN_CONTENT = 18

_FLAG_REALTIME = 1 << 13
_FLAG_POSITIONED = 1 << 12
_FLAG_WEST = 1 << 11
_FLAG_NORTH = 1 << 10
_COURSE_MASK = 0x03FF


def _round_half_away(value: float, precision: int) -> float:
    scale = 10 ** precision
    return int(value * scale + math.copysign(0.5, value)) / scale


def device_identifier(frame: bytes) -> str | None:
    """Read the 15-digit device identifier (IMEI) from a login frame.

    The identifier is 8 BCD bytes right after the opcode; rendered as hex
    that is 16 digits, the first of which is a padding nibble.
    """
    kind = FrameKind.from_marker(frame)
    if kind is None:
        return None
    start = kind.content_offset
    raw = frame[start : start + DEVICE_ID_SIZE]
    if len(raw) < DEVICE_ID_SIZE:
        return None
    digits = bytes(raw).hex()[1:]
    return digits.rjust(DEVICE_ID_LENGTH, "0")[-DEVICE_ID_LENGTH:]


def decode_coordinate(raw: int) -> float:
    """Convert a raw coordinate to decimal degrees.

    Devices send minutes multiplied by 30000, so degrees are
    ``raw / 60 / 30000``, rounded to 6 places half away from zero.
    """
    return _round_half_away(raw / 60.0 / 30000.0, COORDINATE_PRECISION)


def frame_serial_number(frame: bytes) -> int | None:
    """Serial number of a frame: the two bytes in front of the checksum."""
    if len(frame) < MIN_FRAME_SIZE:
        return None
    return int.from_bytes(frame[-6:-4], "big")


def sort_by_serial(frames: list[bytes]) -> list[bytes]:
    """Order frames by serial number, regardless of arrival order."""
    return sorted(frames, key=lambda f: frame_serial_number(f) or 0)


def parse_login(data: bytes) -> LoginRequest | None:
    """Parse a login frame into a :class:`LoginRequest`."""
    frame = parse_frame(data)
    if frame is None or frame.opcode != Opcode.LOGIN:
        return None
    device_id = device_identifier(frame.raw)
    if device_id is None:
        return None
    return LoginRequest(device_id=device_id, serial=frame.serial)


def _parse_timestamp(raw: bytes) -> datetime | None:
    year, month, day, hour, minute, second = raw
    try:
        return datetime(
            2000 + year, month, day, hour, minute, second, tzinfo=timezone.utc
        )
    except ValueError:
        return None


def parse_location(data: bytes | Frame) -> LocationFix | None:
    """Parse the GPS block of a location frame.

    Latitude is south unless the north flag is set; longitude is east
    unless the west flag is set.
    """
    frame = data if isinstance(data, Frame) else parse_frame(data)
    if frame is None or frame.opcode not in LOCATION_OPCODES:
        return None

    content = frame.content
    if len(content) < _LOCATION_MIN_CONTENT:
        return None

    timestamp = _parse_timestamp(content[0:6])
    if timestamp is None:
        return None

    satellites = content[6] & 0x0F
    latitude = decode_coordinate(int.from_bytes(content[7:11], "big"))
    longitude = decode_coordinate(int.from_bytes(content[11:15], "big"))
    speed = content[15]
    flags = int.from_bytes(content[16:18], "big")

    if not flags & _FLAG_NORTH:
        latitude = -latitude
    if flags & _FLAG_WEST:
        longitude = -longitude

    return LocationFix(
        timestamp=timestamp,
        satellites=satellites,
        latitude=latitude,
        longitude=longitude,
        speed_kmh=speed,
        course=flags & _COURSE_MASK,
        positioned=bool(flags & _FLAG_POSITIONED),
        realtime=bool(flags & _FLAG_REALTIME),
        serial=frame.serial,
    )
