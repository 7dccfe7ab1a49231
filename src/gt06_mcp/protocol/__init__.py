"""Protocol layer: markers, opcode catalog, framing, builders and decoders."""

from .catalog import Direction, FrameKind, Opcode, PROTOCOL_CATALOG
from .framing import (
    Frame,
    FrameError,
    build_frame,
    check_frame,
    classify_frame,
    is_valid,
    parse_frame,
    split_frames,
    split_stream,
)
from .commands import FrameEncoder, SequenceGenerator
