"""Stream reassembly for tracker connections."""

from .reassembly import LONG_FRAME_LIMIT, MAX_BUFFER_SIZE, StreamReassembler
