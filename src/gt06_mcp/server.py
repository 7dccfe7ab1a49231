"""MCP server entry point for the GT06 protocol toolkit.

Exposes frame inspection, field decoding and command building as tools,
resources and prompts via the Model Context Protocol using the official
Python MCP SDK with stdio transport. Frames are passed in and out as hex
strings; whitespace between bytes is accepted.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from mcp.server.fastmcp import FastMCP

from .protocol.catalog import PROTOCOL_CATALOG, FrameKind, Opcode
from .protocol.commands import (
    FrameEncoder,
    build_response,
    build_time_calibration_response,
)
from .protocol.framing import (
    check_frame,
    classify_frame,
    frame_checksum,
    split_stream as _split_stream,
)
from .protocol.parser import (
    decode_coordinate as _decode_coordinate,
    device_identifier,
    frame_serial_number,
    parse_location,
    parse_login,
)
from .utils.geo import distance_meters

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "gt06-protocol",
    instructions="Inspect, decode and build GT06/Concox GPS tracker frames",
)

# Outbound serial numbers for every command built by this server
_encoder = FrameEncoder()


def _parse_hex(hex_data: str) -> bytes:
    """Decode a hex string, raising ValueError with a readable message."""
    try:
        return bytes.fromhex(hex_data.replace(":", " "))
    except ValueError as e:
        raise ValueError(f"Invalid hex data: {e}") from e


# ─── STREAM / FRAME TOOLS ────────────────────────────────────────────

@mcp.tool()
def split_stream(hex_data: str) -> dict[str, Any]:
    """Split a captured byte stream into frames.

    Args:
        hex_data: Raw bytes from one or more socket reads, as hex.
    """
    try:
        data = _parse_hex(hex_data)
    except ValueError as e:
        return {"error": str(e)}

    result = _split_stream(data)
    return {
        "frames": [frame.hex(" ") for frame in result.frames],
        "remainder": result.remainder.hex(" "),
        "dropped": result.dropped,
        "stopped_on": result.stopped_on.value if result.stopped_on else None,
    }


@mcp.tool()
def inspect_frame(hex_data: str) -> dict[str, Any]:
    """Classify and validate a single frame.

    Reports marker kind, direction, opcode name, serial number and, if
    the frame is rejected, why.

    Args:
        hex_data: One complete frame as hex.
    """
    try:
        data = _parse_hex(hex_data)
    except ValueError as e:
        return {"error": str(e)}

    kind = FrameKind.from_marker(data)
    if kind is None:
        return {"valid": False, "error": "unrecognized_marker"}
    classification = classify_frame(data)
    if classification is None:
        return {"valid": False, "error": "incomplete_frame", "kind": kind.name}

    error = check_frame(data)
    result: dict[str, Any] = {
        "valid": error is None,
        "kind": classification.kind.name,
        "direction": classification.direction.value,
        "opcode": f"0x{classification.opcode:02X}",
        "name": classification.entry.name if classification.entry else None,
        "serial": frame_serial_number(data),
    }
    if error is not None:
        result["error"] = error.value
        if len(data) >= 8:
            result["expected_checksum"] = f"0x{frame_checksum(data):04X}"
    if classification.opcode == Opcode.LOGIN:
        result["device_id"] = device_identifier(data)
    return result


@mcp.tool()
def decode_login(hex_data: str) -> dict[str, Any]:
    """Decode a login frame (0x01) into the device identifier.

    Args:
        hex_data: Login frame as hex.
    """
    try:
        data = _parse_hex(hex_data)
    except ValueError as e:
        return {"error": str(e)}

    login = parse_login(data)
    if login is None:
        return {"error": "Not a valid login frame"}
    return login.to_dict()


@mcp.tool()
def decode_location(hex_data: str) -> dict[str, Any]:
    """Decode the GPS block of a location frame (0x12 / 0x22).

    Args:
        hex_data: Location frame as hex.
    """
    try:
        data = _parse_hex(hex_data)
    except ValueError as e:
        return {"error": str(e)}

    fix = parse_location(data)
    if fix is None:
        return {"error": "Not a valid location frame"}
    return fix.to_dict()


@mcp.tool()
def decode_coordinate(raw: int) -> dict[str, Any]:
    """Convert a raw 4-byte coordinate value to decimal degrees.

    Args:
        raw: Unsigned coordinate as sent by the device.
    """
    if not 0 <= raw <= 0xFFFFFFFF:
        return {"error": "Raw coordinate must be 0-4294967295"}
    return {"raw": raw, "degrees": _decode_coordinate(raw)}


@mcp.tool()
def distance_between(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> dict[str, Any]:
    """Great-circle distance in meters between two positions."""
    for lat in (lat1, lat2):
        if not -90 <= lat <= 90:
            return {"error": f"Latitude out of range: {lat}"}
    for lon in (lon1, lon2):
        if not -180 <= lon <= 180:
            return {"error": f"Longitude out of range: {lon}"}
    return {"meters": distance_meters((lat1, lon1), (lat2, lon2))}


# ─── COMMAND BUILDING TOOLS ──────────────────────────────────────────

@mcp.tool()
def build_online_command(command: str, server_flag: str = "00000000") -> dict[str, Any]:
    """Build an online command frame (0x80) for a device.

    Args:
        command: ASCII command text, e.g. "WHERE#" or "RESET#".
        server_flag: 4 bytes as hex, echoed back in the device's response.
    """
    try:
        flag = _parse_hex(server_flag)
        frame = _encoder.encode(command, server_flag=flag)
    except (ValueError, UnicodeEncodeError) as e:
        return {"error": str(e)}

    logger.info("Built online command %r (serial %d)", command, frame_serial_number(frame))
    return {
        "frame": frame.hex(" "),
        "serial": frame_serial_number(frame),
        "kind": FrameKind.from_marker(frame).name,
    }


@mcp.tool()
def build_ack(opcode: int, serial: int) -> dict[str, Any]:
    """Build the server acknowledgement for a device message.

    Args:
        opcode: Protocol number being acknowledged (e.g. 1 for login).
        serial: Serial number from the device's frame (0-65535).
    """
    if opcode not in PROTOCOL_CATALOG:
        return {"error": f"Unknown opcode 0x{opcode & 0xFF:02X}"}
    try:
        frame = build_response(opcode, serial)
    except ValueError as e:
        return {"error": str(e)}
    return {"frame": frame.hex(" ")}


@mcp.tool()
def build_time_calibration(serial: int, utc_time: str | None = None) -> dict[str, Any]:
    """Build the reply to a time calibration request (0x8A).

    Args:
        serial: Serial number from the device's request (0-65535).
        utc_time: Optional ISO-8601 time; defaults to now.
    """
    try:
        when = datetime.fromisoformat(utc_time) if utc_time else None
        frame = build_time_calibration_response(serial, when)
    except ValueError as e:
        return {"error": str(e)}
    return {"frame": frame.hex(" ")}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("gt06://catalog/opcodes")
def resource_opcode_catalog() -> str:
    """All recognized opcodes with names and directions."""
    opcodes = [
        {
            "opcode": f"0x{entry.opcode:02X}",
            "name": entry.name,
            "direction": entry.direction.value,
        }
        for entry in sorted(PROTOCOL_CATALOG.values(), key=lambda e: e.opcode)
    ]
    return json.dumps({"opcodes": opcodes, "count": len(opcodes)})


@mcp.resource("gt06://catalog/markers")
def resource_marker_catalog() -> str:
    """Start marker families and their header layout."""
    markers = [
        {
            "kind": kind.name,
            "marker": kind.marker.hex(" "),
            "length_width": kind.length_width,
            "opcode_offset": kind.opcode_offset,
            "direction": kind.direction.value,
        }
        for kind in FrameKind
    ]
    return json.dumps({"markers": markers})


@mcp.resource("gt06://encoder/sequence")
def resource_sequence() -> str:
    """Last serial number issued to an outbound command."""
    return json.dumps({"current": _encoder.sequence.current})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def analyze_capture(hex_data: str) -> str:
    """Walk through a captured tracker session.

    Args:
        hex_data: Raw bytes captured from a device connection.
    """
    return f"""Analyze this GT06 tracker capture:

{hex_data}

Steps:
- Use split_stream to cut it into frames and note any remainder or dropped frames
- Run inspect_frame on each frame to get its opcode, serial and validity
- For login frames use decode_login; for location frames use decode_location
- Point out checksum failures and what the expected checksum would be
- Suggest the acknowledgement the server should send (build_ack / build_time_calibration)"""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
