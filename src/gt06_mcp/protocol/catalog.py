"""Start markers and the opcode catalog.

Every GT06 frame opens with a doubled marker byte that fixes both the
direction of the message and the width of its length field. The opcode
that follows the length field is looked up here; a frame whose opcode is
missing from :data:`PROTOCOL_CATALOG` is never accepted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

END_MARKER = b"\x0D\x0A"
CHECKSUM_SIZE = 2
SERIAL_SIZE = 2


class CatalogError(RuntimeError):
    """The opcode catalog is inconsistent."""


class Direction(Enum):
    DEVICE_TO_SERVER = "device_to_server"
    SERVER_TO_DEVICE = "server_to_device"


class FrameKind(Enum):
    """Start marker families and their header layout."""

    NORMAL = (b"\x78\x78", 1)
    LONG = (b"\x79\x79", 2)
    ONLINE_COMMAND_REQUEST = (b"\x70\x70", 1)

    def __init__(self, marker: bytes, length_width: int) -> None:
        self.marker = marker
        self.length_width = length_width

    @property
    def opcode_offset(self) -> int:
        return len(self.marker) + self.length_width

    @property
    def content_offset(self) -> int:
        return self.opcode_offset + 1

    @property
    def max_declared_length(self) -> int:
        return (1 << (8 * self.length_width)) - 1

    @property
    def direction(self) -> Direction:
        if self is FrameKind.ONLINE_COMMAND_REQUEST:
            return Direction.SERVER_TO_DEVICE
        return Direction.DEVICE_TO_SERVER

    def declared_length(self, data: bytes) -> int:
        """Read the big-endian length field from a frame header."""
        start = len(self.marker)
        return int.from_bytes(data[start : start + self.length_width], "big")

    def frame_length(self, declared: int) -> int:
        """Total on-wire size for a declared length.

        The length field counts opcode, content, serial and checksum, so
        the marker, the field itself and the end marker are added back.
        """
        return declared + len(self.marker) + self.length_width + len(END_MARKER)

    @classmethod
    def from_marker(cls, data: bytes) -> FrameKind | None:
        head = bytes(data[:2])
        for kind in cls:
            if kind.marker == head:
                return kind
        return None


class Opcode(IntEnum):
    """Protocol numbers carried in the opcode byte."""

    LOGIN = 0x01
    LOCATION_GT06 = 0x12
    STATUS = 0x13
    ONLINE_COMMAND_RESPONSE = 0x15
    ALARM_GT06 = 0x16
    LBS_LOCATION_GT06 = 0x18
    ONLINE_COMMAND_LONG_RESPONSE = 0x21
    LOCATION_X3 = 0x22
    ALARM_X3 = 0x26
    ALARM_X3_V2 = 0x27
    LBS_LOCATION_X3 = 0x28
    WIFI_INFORMATION = 0x2C
    ONLINE_COMMAND = 0x80
    TIME_CALIBRATION = 0x8A
    INFORMATION = 0x94


@dataclass(frozen=True)
class CatalogEntry:
    opcode: int
    name: str
    direction: Direction


def _entry(opcode: Opcode, name: str, direction=Direction.DEVICE_TO_SERVER):
    return opcode.value, CatalogEntry(opcode.value, name, direction)


PROTOCOL_CATALOG: dict[int, CatalogEntry] = dict([
    _entry(Opcode.LOGIN, "Login"),
    _entry(Opcode.LOCATION_GT06, "Location"),
    _entry(Opcode.LOCATION_X3, "Location"),
    _entry(Opcode.STATUS, "Status"),
    _entry(Opcode.ALARM_GT06, "Alarm"),
    _entry(Opcode.ALARM_X3, "Alarm"),
    _entry(Opcode.ALARM_X3_V2, "Alarm"),
    _entry(Opcode.LBS_LOCATION_GT06, "LBS Location"),
    _entry(Opcode.LBS_LOCATION_X3, "LBS Location"),
    _entry(Opcode.WIFI_INFORMATION, "Wifi Information"),
    _entry(Opcode.INFORMATION, "Information"),
    _entry(Opcode.TIME_CALIBRATION, "Time Calibration"),
    _entry(Opcode.ONLINE_COMMAND_RESPONSE, "Online Command Response"),
    _entry(Opcode.ONLINE_COMMAND_LONG_RESPONSE, "Online Command Response Long"),
    _entry(Opcode.ONLINE_COMMAND, "Online Command", Direction.SERVER_TO_DEVICE),
])

LOCATION_OPCODES = frozenset({Opcode.LOCATION_GT06, Opcode.LOCATION_X3})


def lookup(opcode: int) -> CatalogEntry | None:
    """Return the catalog entry for ``opcode``, or ``None`` if unknown."""
    return PROTOCOL_CATALOG.get(opcode)


def verify_catalog(catalog: dict[int, CatalogEntry] | None = None) -> None:
    """Check the catalog for internal consistency.

    Raises:
        CatalogError: If an entry is keyed under the wrong opcode, has an
            out-of-range opcode or an empty name, or if the outbound
            online-command opcode is missing.
    """
    if catalog is None:
        catalog = PROTOCOL_CATALOG

    for opcode, entry in catalog.items():
        if not 0 <= opcode <= 0xFF:
            raise CatalogError(f"Opcode out of range: {opcode:#x}")
        if entry.opcode != opcode:
            raise CatalogError(
                f"Entry {entry.name!r} keyed under 0x{opcode:02X} "
                f"but declares 0x{entry.opcode:02X}"
            )
        if not entry.name:
            raise CatalogError(f"Opcode 0x{opcode:02X} has no name")

    outbound = catalog.get(Opcode.ONLINE_COMMAND)
    if outbound is None or outbound.direction is not Direction.SERVER_TO_DEVICE:
        raise CatalogError("Outbound online command opcode 0x80 is not registered")


verify_catalog()
