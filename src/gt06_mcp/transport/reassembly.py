"""Per-connection reassembly of GT06 frames from TCP reads.

A single read from a tracker socket can end halfway through a frame.
:class:`StreamReassembler` keeps one growable buffer per connection,
hands back every whole, valid frame it can cut from it and holds on to
the tail until the next read arrives.

The per-connection buffer is capped at :data:`MAX_BUFFER_SIZE` bytes.
That covers every Normal frame and ordinary Long frames, but a Long frame
may announce up to 65541 bytes on the wire. One that is larger than the
cap and arrives over several reads is skipped, not reassembled. Pass
``max_buffer_size=LONG_FRAME_LIMIT`` to accept any legal frame.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Hashable

from ..protocol.catalog import FrameKind
from ..protocol.framing import FrameError, is_valid, split_stream

logger = logging.getLogger(__name__)

MAX_BUFFER_SIZE = 8192  # bytes retained per connection
LONG_FRAME_LIMIT = FrameKind.LONG.frame_length(0xFFFF)

_MARKERS = tuple(kind.marker for kind in FrameKind)
_MARKER_BYTES = frozenset(marker[0] for marker in _MARKERS)


def _find_next_marker(buffer: bytearray, start: int = 1) -> int:
    """Index of the next start marker at or after ``start``, or -1."""
    hits = [i for i in (buffer.find(m, start) for m in _MARKERS) if i >= 0]
    return min(hits) if hits else -1


class StreamReassembler:
    """Turns a sequence of reads into whole frames, per connection.

    Usage::

        reassembler = StreamReassembler()
        for frame in reassembler.feed(peer, data):
            handle(frame)
        ...
        reassembler.discard(peer)
    """

    def __init__(self, max_buffer_size: int = MAX_BUFFER_SIZE) -> None:
        self._max_buffer_size = max_buffer_size
        self._buffers: dict[Hashable, bytearray] = {}
        self._lock = threading.Lock()

    def feed(self, connection_id: Hashable, data: bytes) -> list[bytes]:
        """Append ``data`` to the connection's buffer and return whole frames.

        Frames come back in stream order. Bytes that cannot start a frame
        are skipped up to the next start marker. If the buffer grows past
        ``max_buffer_size`` while waiting for the rest of a frame, that
        frame is given up on and reading resumes at the next start marker,
        so a corrupted length field costs one frame, not the ones behind it.
        """
        with self._lock:
            buffer = self._buffers.setdefault(connection_id, bytearray())
            buffer.extend(data)

            frames = self._drain(connection_id, buffer)
            while len(buffer) > self._max_buffer_size:
                nxt = _find_next_marker(buffer)
                logger.warning(
                    "Buffer overflow for %s (%d bytes), skipping stalled frame",
                    connection_id,
                    len(buffer),
                )
                del buffer[: nxt if nxt > 0 else len(buffer)]
                frames.extend(self._drain(connection_id, buffer))

            return frames

    def _drain(self, connection_id: Hashable, buffer: bytearray) -> list[bytes]:
        """Cut every whole, valid frame from the front of ``buffer``."""
        frames: list[bytes] = []
        dropped = 0
        while buffer:
            result = split_stream(bytes(buffer))
            for frame in result.frames:
                if is_valid(frame):
                    frames.append(frame)
                else:
                    dropped += 1
            dropped += result.dropped
            consumed = len(buffer) - len(result.remainder)
            del buffer[:consumed]

            if result.stopped_on is not FrameError.UNRECOGNIZED_MARKER:
                break
            self._resync(connection_id, buffer)

        if dropped:
            logger.debug(
                "Dropped %d invalid frame(s) from %s", dropped, connection_id
            )
        return frames

    def _resync(self, connection_id: Hashable, buffer: bytearray) -> None:
        """Drop leading bytes that are not a start marker."""
        nxt = _find_next_marker(buffer)
        if nxt >= 0:
            skipped = nxt
        elif buffer[-1] in _MARKER_BYTES:
            # the last byte may be the first half of a marker
            skipped = len(buffer) - 1
        else:
            skipped = len(buffer)
        logger.warning(
            "Skipping %d unrecognized byte(s) from %s", skipped, connection_id
        )
        del buffer[:skipped]

    def pending(self, connection_id: Hashable) -> int:
        """Number of bytes held for a connection."""
        with self._lock:
            return len(self._buffers.get(connection_id, b""))

    def discard(self, connection_id: Hashable) -> None:
        """Forget a connection's buffer, e.g. after it closes."""
        with self._lock:
            self._buffers.pop(connection_id, None)

    def connections(self) -> list[Hashable]:
        with self._lock:
            return list(self._buffers)
