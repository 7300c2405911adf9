"""Stream demultiplexing module."""

from .demux import (
    METADATA_MARKER,
    THINKING_MARKER,
    Channel,
    StreamDemultiplexer,
    StreamResult,
)

__all__ = [
    "METADATA_MARKER",
    "THINKING_MARKER",
    "Channel",
    "StreamDemultiplexer",
    "StreamResult",
]
