"""Checksum and geodesy helpers."""

from .crc import crc16_x25, compute_checksum, validate_checksum
from .geo import distance_meters
