"""Frame classification, validation, splitting and building.

Frame layout::

    +---------+----------+--------+-----------+--------+----------+--------+
    | Marker  |  Length  | Opcode |  Content  | Serial | Checksum |  End   |
    | 2 bytes | 1 or 2 B | 1 byte | variable  | 2 bytes| 2 bytes  | 0D 0A  |
    +---------+----------+--------+-----------+--------+----------+--------+

- Marker: 0x78 0x78 (normal), 0x79 0x79 (long), 0x70 0x70 (online
  command request)
- Length: big-endian, counts opcode through checksum
- Serial: big-endian, assigned by whoever built the frame
- Checksum: CRC-16/X25 over length through serial, big-endian

TCP gives no message boundaries, so a single read may carry several
frames back to back or only part of one. :func:`split_stream` walks a
buffer with a cursor and hands back whole frames plus whatever is left.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from ..utils.crc import compute_checksum, crc16_x25, validate_checksum
from .catalog import (
    CHECKSUM_SIZE,
    END_MARKER,
    SERIAL_SIZE,
    CatalogEntry,
    Direction,
    FrameKind,
    lookup,
)

logger = logging.getLogger(__name__)

MIN_FRAME_SIZE = 10  # marker(2) + length(1) + opcode(1) + serial(2) + crc(2) + end(2)
_TRAILER_SIZE = SERIAL_SIZE + CHECKSUM_SIZE + len(END_MARKER)


class FrameError(Enum):
    """Reasons a buffer or candidate frame is not accepted."""

    INCOMPLETE_FRAME = "incomplete_frame"
    UNRECOGNIZED_MARKER = "unrecognized_marker"
    BAD_END_MARKER = "bad_end_marker"
    MALFORMED_LENGTH = "malformed_length"
    UNKNOWN_OPCODE = "unknown_opcode"
    CHECKSUM_MISMATCH = "checksum_mismatch"


@dataclass(frozen=True)
class Classification:
    """What the header of a frame says about it."""

    kind: FrameKind
    direction: Direction
    opcode: int
    entry: CatalogEntry | None

    @property
    def recognized(self) -> bool:
        return self.entry is not None


@dataclass(frozen=True)
class Frame:
    """A validated protocol frame."""

    kind: FrameKind
    declared_length: int
    opcode: int
    content: bytes
    serial: int
    checksum: int
    raw: bytes

    def __repr__(self) -> str:
        return (
            f"Frame(kind={self.kind.name}, opcode=0x{self.opcode:02X}, "
            f"serial={self.serial}, "
            f"content={self.content.hex(' ') if self.content else '(empty)'})"
        )


@dataclass
class SplitResult:
    """Outcome of splitting one buffer."""

    frames: list[bytes] = field(default_factory=list)
    remainder: bytes = b""
    dropped: int = 0
    stopped_on: FrameError | None = None


def classify_frame(data: bytes) -> Classification | None:
    """Determine kind, direction and opcode from a frame header.

    Returns ``None`` if the marker is not one of ours or the header is
    truncated. An opcode missing from the catalog is reported through
    ``entry`` being ``None`` rather than as a failure.
    """
    kind = FrameKind.from_marker(data)
    if kind is None or len(data) <= kind.opcode_offset:
        return None
    opcode = data[kind.opcode_offset]
    return Classification(
        kind=kind,
        direction=kind.direction,
        opcode=opcode,
        entry=lookup(opcode),
    )


def expected_frame_length(data: bytes) -> int | None:
    """Total on-wire length announced by the header at the start of ``data``."""
    kind = FrameKind.from_marker(data)
    if kind is None or len(data) < len(kind.marker) + kind.length_width:
        return None
    return kind.frame_length(kind.declared_length(data))


def check_frame(data: bytes) -> FrameError | None:
    """Validate a single candidate frame.

    Returns:
        ``None`` if the frame is acceptable, otherwise the first
        :class:`FrameError` found.
    """
    if len(data) < MIN_FRAME_SIZE:
        return FrameError.INCOMPLETE_FRAME

    classification = classify_frame(data)
    if classification is None:
        return FrameError.UNRECOGNIZED_MARKER

    if data[-2:] != END_MARKER:
        return FrameError.BAD_END_MARKER

    if expected_frame_length(data) != len(data):
        return FrameError.MALFORMED_LENGTH

    if not classification.recognized:
        return FrameError.UNKNOWN_OPCODE

    if not validate_checksum(data):
        return FrameError.CHECKSUM_MISMATCH

    return None


def is_valid(data: bytes) -> bool:
    """True if ``data`` is exactly one acceptable frame."""
    return check_frame(data) is None


def parse_frame(data: bytes) -> Frame | None:
    """Parse a complete frame.

    Returns:
        A :class:`Frame`, or ``None`` if :func:`check_frame` rejects it.
    """
    error = check_frame(data)
    if error is not None:
        logger.debug("Rejected frame %s: %s", data.hex(" "), error.value)
        return None

    data = bytes(data)
    kind = FrameKind.from_marker(data)
    return Frame(
        kind=kind,
        declared_length=kind.declared_length(data),
        opcode=data[kind.opcode_offset],
        content=data[kind.content_offset : -_TRAILER_SIZE],
        serial=int.from_bytes(data[-6:-4], "big"),
        checksum=int.from_bytes(data[-4:-2], "big"),
        raw=data,
    )


def split_stream(data: bytes) -> SplitResult:
    """Cut a raw byte buffer into candidate frames.

    Frames are returned in arrival order. When the remaining bytes are
    exactly one announced frame they are emitted as-is; a leading frame
    followed by more data is emitted only if it validates, and splitting
    carries on past it either way. Splitting stops on a short tail or an
    unknown marker, and the unconsumed bytes are returned as
    ``remainder``.
    """
    data = bytes(data)
    result = SplitResult()
    pos = 0
    total = len(data)

    while True:
        remaining = total - pos
        if remaining == 0:
            break
        if remaining < MIN_FRAME_SIZE:
            result.stopped_on = FrameError.INCOMPLETE_FRAME
            break

        kind = FrameKind.from_marker(data[pos : pos + 2])
        if kind is None:
            result.stopped_on = FrameError.UNRECOGNIZED_MARKER
            break

        length = kind.frame_length(kind.declared_length(data[pos : pos + 4]))
        if remaining < length:
            result.stopped_on = FrameError.INCOMPLETE_FRAME
            break

        candidate = data[pos : pos + length]
        if remaining == length:
            result.frames.append(candidate)
        elif is_valid(candidate):
            result.frames.append(candidate)
        else:
            result.dropped += 1
            logger.debug(
                "Dropping invalid frame at offset %d: %s",
                pos,
                check_frame(candidate).value,
            )
        pos += length

    result.remainder = data[pos:]
    return result


def split_frames(data: bytes) -> list[bytes]:
    """Return the frames found in ``data``, discarding any remainder."""
    return split_stream(data).frames


def build_frame(
    opcode: int,
    content: bytes = b"",
    serial: int = 0,
    kind: FrameKind = FrameKind.NORMAL,
) -> bytes:
    """Assemble a complete frame around ``content``.

    Args:
        opcode: Single-byte protocol number.
        content: Bytes between the opcode and the serial number.
        serial: 16-bit serial number written big-endian.
        kind: Marker family; selects the width of the length field.

    Raises:
        ValueError: If the opcode or serial is out of range, or the
            content does not fit the length field.
    """
    if not 0 <= opcode <= 0xFF:
        raise ValueError(f"Opcode must be 0-255, got {opcode}")
    if not 0 <= serial <= 0xFFFF:
        raise ValueError(f"Serial must be 0-65535, got {serial}")

    declared = 1 + len(content) + SERIAL_SIZE + CHECKSUM_SIZE
    if declared > kind.max_declared_length:
        raise ValueError(
            f"Content of {len(content)} bytes does not fit a {kind.name} frame"
        )

    body = (
        declared.to_bytes(kind.length_width, "big")
        + bytes([opcode])
        + content
        + serial.to_bytes(SERIAL_SIZE, "big")
    )
    checksum = bytes(compute_checksum(body))
    return kind.marker + body + checksum + END_MARKER


def frame_checksum(data: bytes) -> int:
    """CRC-16/X25 over the checksummed range of a complete frame."""
    return crc16_x25(data[2:-4])
