"""Tests for field decoders."""

from datetime import datetime, timezone

import pytest

from gt06_mcp.models.device import LocationFix
from gt06_mcp.protocol.catalog import FrameKind, Opcode
from gt06_mcp.protocol.framing import build_frame, parse_frame
from gt06_mcp.protocol.parser import (
    decode_coordinate,
    device_identifier,
    frame_serial_number,
    parse_location,
    parse_login,
    sort_by_serial,
)
from gt06_mcp.utils.geo import distance_meters

LOGIN_ACK = bytes.fromhex("78 78 05 01 00 01 D9 DC 0D 0A")
IMEI_BCD = bytes.fromhex("01 23 45 67 89 01 23 45")

# 22.546097 N, 113.915715 E as raw device values
RAW_LAT = 0x026B3F3E
RAW_LON = 0x0C38C9DF


def _location_content(flags: int = 0x154C, month: int = 5) -> bytes:
    return (
        bytes([24, month, 6, 7, 8, 9])
        + bytes([0xC9])  # gps info length 12, 9 satellites
        + RAW_LAT.to_bytes(4, "big")
        + RAW_LON.to_bytes(4, "big")
        + bytes([60])  # speed
        + flags.to_bytes(2, "big")
    )


# ─── device identifier ───────────────────────────────────────────────

def test_device_identifier_from_login():
    frame = build_frame(Opcode.LOGIN, IMEI_BCD, serial=1)
    assert device_identifier(frame) == "123456789012345"


def test_device_identifier_keeps_leading_zeros():
    frame = build_frame(Opcode.LOGIN, bytes.fromhex("00 00 12 34 56 78 90 12"), serial=1)
    assert device_identifier(frame) == "000123456789012"
    assert len(device_identifier(frame)) == 15


def test_device_identifier_long_frame():
    frame = build_frame(Opcode.LOGIN, IMEI_BCD, serial=1, kind=FrameKind.LONG)
    assert device_identifier(frame) == "123456789012345"


def test_device_identifier_too_short():
    assert device_identifier(b"\x78\x78\x05\x01\x00\x01") is None
    assert device_identifier(b"\x00" * 20) is None


def test_parse_login():
    login = parse_login(build_frame(Opcode.LOGIN, IMEI_BCD, serial=7))
    assert login is not None
    assert login.device_id == "123456789012345"
    assert login.serial == 7
    assert login.to_dict() == {"device_id": "123456789012345", "serial": 7}


def test_parse_login_rejects_other_frames():
    assert parse_login(LOGIN_ACK) is None
    assert parse_login(build_frame(Opcode.STATUS, IMEI_BCD, serial=1)) is None


# ─── coordinates ─────────────────────────────────────────────────────

def test_decode_coordinate_known_value():
    assert decode_coordinate(RAW_LAT) == pytest.approx(22.546097, abs=1e-6)
    assert decode_coordinate(RAW_LON) == pytest.approx(113.915715, abs=1e-6)


def test_decode_coordinate_exact_degrees():
    assert decode_coordinate(1800000) == 1.0
    assert decode_coordinate(0) == 0.0


def test_decode_coordinate_negative_rounds_away_from_zero():
    assert decode_coordinate(-RAW_LAT) == pytest.approx(-22.546097, abs=1e-6)


def test_decode_coordinate_six_places():
    value = decode_coordinate(RAW_LAT)
    assert round(value, 6) == value


# ─── serial numbers ──────────────────────────────────────────────────

def test_frame_serial_number():
    assert frame_serial_number(LOGIN_ACK) == 1
    assert frame_serial_number(build_frame(Opcode.STATUS, b"\x00", serial=0x0A0B)) == 0x0A0B


def test_frame_serial_number_parses_hex_digits():
    """0x000A is ten, not a decimal parse failure."""
    assert frame_serial_number(build_frame(Opcode.STATUS, b"", serial=0x000A)) == 10


def test_frame_serial_number_short_frame():
    assert frame_serial_number(b"\x78\x78") is None


def test_sort_by_serial():
    frames = [build_frame(Opcode.STATUS, b"", serial=s) for s in (5, 1, 3)]
    ordered = sort_by_serial(frames)
    assert [frame_serial_number(f) for f in ordered] == [1, 3, 5]


# ─── location ────────────────────────────────────────────────────────

def test_parse_location_north_east():
    raw = build_frame(Opcode.LOCATION_GT06, _location_content() + b"\x01\xCC", serial=0x26)
    fix = parse_location(raw)
    assert isinstance(fix, LocationFix)
    assert fix.timestamp == datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    assert fix.satellites == 9
    assert fix.latitude == pytest.approx(22.546097, abs=1e-6)
    assert fix.longitude == pytest.approx(113.915715, abs=1e-6)
    assert fix.speed_kmh == 60
    assert fix.course == 0x14C
    assert fix.positioned
    assert not fix.realtime
    assert fix.serial == 0x26


def test_parse_location_south_west():
    raw = build_frame(Opcode.LOCATION_X3, _location_content(flags=0x1800), serial=1)
    fix = parse_location(raw)
    assert fix.latitude < 0
    assert fix.longitude < 0


def test_parse_location_accepts_parsed_frame():
    frame = parse_frame(build_frame(Opcode.LOCATION_GT06, _location_content(), serial=2))
    assert parse_location(frame).serial == 2


def test_parse_location_rejects_bad_input():
    assert parse_location(LOGIN_ACK) is None
    assert parse_location(build_frame(Opcode.LOCATION_GT06, b"\x00" * 10, serial=1)) is None
    assert parse_location(build_frame(Opcode.LOCATION_GT06, _location_content(month=13), serial=1)) is None


def test_location_to_dict_and_distance():
    a = parse_location(build_frame(Opcode.LOCATION_GT06, _location_content(), serial=1))
    assert a.to_dict()["timestamp"] == "2024-05-06T07:08:09+00:00"
    assert a.distance_to(a) == 0.0


def test_distance_one_degree_at_equator():
    assert distance_meters((0.0, 0.0), (1.0, 0.0)) == pytest.approx(111319.49, rel=1e-6)
