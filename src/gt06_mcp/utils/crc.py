"""CRC-16/X25 checksum used by GT06 frames.

Reflected CCITT polynomial (0x1021, 0x8408 reflected), initial value
0xFFFF, final XOR 0xFFFF. The checksum covers everything from the length
field up to, but not including, the checksum itself.
"""

from __future__ import annotations

_POLY_REFLECTED = 0x8408


def _build_table() -> tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ _POLY_REFLECTED
            else:
                crc >>= 1
        table.append(crc)
    return tuple(table)


_CRC_TABLE = _build_table()


def crc16_x25(data: bytes) -> int:
    """Compute the CRC-16/X25 of ``data``."""
    crc = 0xFFFF
    for byte in data:
        crc = (crc >> 8) ^ _CRC_TABLE[(crc ^ byte) & 0xFF]
    return crc ^ 0xFFFF


def compute_checksum(data: bytes) -> tuple[int, int]:
    """Return the checksum of ``data`` as a (high, low) byte pair."""
    crc = crc16_x25(data)
    return (crc >> 8) & 0xFF, crc & 0xFF


def validate_checksum(frame: bytes) -> bool:
    """Check the checksum field of a complete frame.

    The covered range starts after the 2-byte start marker and stops
    before the trailing checksum + end marker (4 bytes).
    """
    if len(frame) < 8:
        return False
    covered = frame[2:-4]
    expected = frame[-4:-2]
    return bytes(compute_checksum(covered)) == expected
