"""Outbound frame builders.

Online commands (opcode 0x80) carry a text command for the device, for
example ``"RESET#"`` or ``"WHERE#"``. Each one is stamped with a serial
number from a :class:`SequenceGenerator` so the device's response can be
matched back to it. Acknowledgements for device messages reuse the
serial number the device sent instead.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from .catalog import FrameKind, Opcode
from .framing import build_frame

logger = logging.getLogger(__name__)

SERVER_FLAG_SIZE = 4
MAX_SHORT_PAYLOAD = 0xFF - 10  # largest payload that fits a 1-byte length
MAX_PAYLOAD_SIZE = 0xFFFF - 11


class SequenceGenerator:
    """Thread-safe 16-bit serial number counter.

    Values run 1..65535 and wrap back to 1; 0 is never issued.
    """

    def __init__(self, start: int = 0) -> None:
        if not 0 <= start <= 0xFFFF:
            raise ValueError(f"Start must be 0-65535, got {start}")
        self._value = start
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        """The most recently issued value (0 if none yet)."""
        with self._lock:
            return self._value

    def next_value(self) -> int:
        with self._lock:
            self._value += 1
            if self._value > 0xFFFF:
                self._value = 1
            return self._value

    def next_bytes(self) -> bytes:
        """Issue the next value as a big-endian byte pair."""
        return self.next_value().to_bytes(2, "big")


class FrameEncoder:
    """Builds online command frames stamped with fresh serial numbers.

    Usage::

        encoder = FrameEncoder()
        wire = encoder.encode("WHERE#")
    """

    def __init__(self, sequence: SequenceGenerator | None = None) -> None:
        self.sequence = sequence if sequence is not None else SequenceGenerator()

    def encode(
        self,
        payload: bytes | str,
        server_flag: bytes = b"\x00" * SERVER_FLAG_SIZE,
    ) -> bytes:
        """Build an online command frame for ``payload``.

        Payloads up to 245 bytes go in a normal (0x78 0x78) frame with a
        1-byte inner length; larger ones use a long (0x79 0x79) frame
        whose inner length is 2 bytes wide.

        Args:
            payload: Command bytes, or ASCII text.
            server_flag: 4 opaque bytes echoed back by the device.

        Raises:
            ValueError: If the payload is too large, is not ASCII, or the
                server flag is not 4 bytes.
        """
        if isinstance(payload, str):
            payload = payload.encode("ascii")
        if len(server_flag) != SERVER_FLAG_SIZE:
            raise ValueError(
                f"Server flag must be {SERVER_FLAG_SIZE} bytes, got {len(server_flag)}"
            )
        if len(payload) > MAX_PAYLOAD_SIZE:
            raise ValueError(
                f"Payload must be at most {MAX_PAYLOAD_SIZE} bytes, got {len(payload)}"
            )

        inner_length = len(payload) + SERVER_FLAG_SIZE
        if len(payload) <= MAX_SHORT_PAYLOAD:
            kind = FrameKind.NORMAL
            inner = inner_length.to_bytes(1, "big")
        else:
            kind = FrameKind.LONG
            inner = inner_length.to_bytes(2, "big")

        serial = self.sequence.next_value()
        frame = build_frame(
            Opcode.ONLINE_COMMAND,
            inner + bytes(server_flag) + payload,
            serial=serial,
            kind=kind,
        )
        logger.debug(
            "Encoded online command serial=%d kind=%s size=%d",
            serial,
            kind.name,
            len(frame),
        )
        return frame


def build_online_command(
    payload: bytes | str,
    sequence: SequenceGenerator,
    server_flag: bytes = b"\x00" * SERVER_FLAG_SIZE,
) -> bytes:
    """Build an online command frame using an explicit sequence generator."""
    return FrameEncoder(sequence).encode(payload, server_flag)


def build_response(opcode: int, serial: int) -> bytes:
    """Build the 10-byte acknowledgement the server sends for a device message.

    Args:
        opcode: Protocol number of the message being acknowledged.
        serial: Serial number taken from the device's frame.
    """
    return build_frame(opcode, b"", serial=serial)


def build_time_calibration_response(
    serial: int, when: datetime | None = None
) -> bytes:
    """Build the reply to a time calibration request (0x8A).

    The content is the UTC date and time as six bytes:
    year - 2000, month, day, hour, minute, second.
    """
    if when is None:
        when = datetime.now(timezone.utc)
    elif when.tzinfo is not None:
        when = when.astimezone(timezone.utc)

    if not 2000 <= when.year <= 2255:
        raise ValueError(f"Year must be 2000-2255, got {when.year}")

    content = bytes([
        when.year - 2000,
        when.month,
        when.day,
        when.hour,
        when.minute,
        when.second,
    ])
    return build_frame(Opcode.TIME_CALIBRATION, content, serial=serial)
