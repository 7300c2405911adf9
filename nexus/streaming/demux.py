"""Split the gateway's single text stream into answer, thinking and metadata."""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..logging_config import get_logger
from ..models import MessageMetadata

logger = get_logger(__name__)

THINKING_MARKER = "___THINKING___"
METADATA_MARKER = "___METADATA___"

DeltaCallback = Callable[[str, str], None]  # (content, thinking)


class Channel(str, Enum):
    ANSWER = "answer"
    THINKING = "thinking"
    METADATA = "metadata"


@dataclass
class StreamResult:
    """Everything accumulated once the stream has ended (or been cut short)."""

    content: str
    thinking: str
    metadata: MessageMetadata | None = None


def _partial_marker_suffix(text: str) -> int:
    """Length of the longest suffix of text that is a proper prefix of a marker."""
    longest = 0
    for marker in (THINKING_MARKER, METADATA_MARKER):
        for size in range(min(len(marker) - 1, len(text)), longest, -1):
            if text.endswith(marker[:size]):
                longest = size
                break
    return longest


class StreamDemultiplexer:
    """
    Incremental marker scanner.

    Every chunk starts on the answer channel. Inside a chunk, text before a
    THINKING marker is answer text and text after it is thinking text up to
    the end of that chunk. The METADATA marker switches to the metadata
    channel for the rest of the stream, and that payload is parsed once in
    close(). A trailing fragment that could be the beginning of a marker is
    held back until the next chunk shows whether it really is one. If it is
    not, it keeps the channel it was read on.
    """

    def __init__(self, on_delta: DeltaCallback | None = None):
        self._on_delta = on_delta
        self._channel = Channel.ANSWER
        self._pending = ""
        self._content: list[str] = []
        self._thinking: list[str] = []
        self._metadata_raw: list[str] = []
        self._closed = False
        self._result: StreamResult | None = None

    @property
    def content(self) -> str:
        return "".join(self._content)

    @property
    def thinking(self) -> str:
        return "".join(self._thinking)

    @property
    def channel(self) -> Channel:
        return self._channel

    def feed(self, chunk: str) -> None:
        """Consume one chunk and fire the delta callback."""
        if self._closed:
            raise RuntimeError("Demultiplexer already closed")

        held, self._pending = self._pending, ""
        if self._channel is not Channel.METADATA:
            buffer = held + chunk
            index, marker = self._find_next_marker(buffer)
            if marker is not None and index < len(held):
                # The held-back fragment completes a marker
                self._emit(held[:index])
                chunk = buffer[index:]
            else:
                self._emit(held)
            self._channel = Channel.ANSWER

        self._scan(chunk)

        if self._on_delta is not None:
            self._on_delta(self.content, self.thinking)

    def close(self) -> StreamResult:
        """Flush held-back text and parse metadata. Safe to call more than once."""
        if self._result is not None:
            return self._result

        self._closed = True
        if self._pending:
            self._emit(self._pending)
            self._pending = ""

        self._result = StreamResult(
            content=self.content,
            thinking=self.thinking,
            metadata=self._parse_metadata(),
        )
        return self._result

    def _scan(self, buffer: str) -> None:
        while buffer:
            if self._channel is Channel.METADATA:
                self._metadata_raw.append(buffer)
                return

            index, marker = self._find_next_marker(buffer)
            if marker is None:
                hold = _partial_marker_suffix(buffer)
                self._emit(buffer[: len(buffer) - hold])
                self._pending = buffer[len(buffer) - hold :]
                return

            self._emit(buffer[:index])
            self._channel = (
                Channel.METADATA if marker == METADATA_MARKER else Channel.THINKING
            )
            buffer = buffer[index + len(marker) :]

    @staticmethod
    def _find_next_marker(buffer: str) -> tuple[int, str | None]:
        best_index, best_marker = -1, None
        for marker in (METADATA_MARKER, THINKING_MARKER):
            index = buffer.find(marker)
            if index != -1 and (best_index == -1 or index < best_index):
                best_index, best_marker = index, marker
        return best_index, best_marker

    def _emit(self, text: str) -> None:
        if not text:
            return
        if self._channel is Channel.THINKING:
            self._thinking.append(text)
        elif self._channel is Channel.ANSWER:
            self._content.append(text)
        else:
            self._metadata_raw.append(text)

    def _parse_metadata(self) -> MessageMetadata | None:
        raw = "".join(self._metadata_raw).strip()
        if not raw:
            return None
        try:
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("metadata payload is not an object")
            return MessageMetadata.from_dict(payload)
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to parse metadata: {e}")
            return None
