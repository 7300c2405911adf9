"""Tests for StreamDemultiplexer."""

import json

import pytest

from nexus.streaming import (
    METADATA_MARKER,
    THINKING_MARKER,
    Channel,
    StreamDemultiplexer,
)

METADATA = {
    "model": "claude-sonnet-4-5",
    "tokens": {"input": 12, "output": 34, "total": 46},
    "duration": 900,
    "timestamp": 1700000000000,
}

FULL_BODY = (
    "Hello world"
    + THINKING_MARKER
    + "Let me think"
    + METADATA_MARKER
    + json.dumps(METADATA)
)


def feed_all(chunks: list[str]):
    demux = StreamDemultiplexer()
    for chunk in chunks:
        demux.feed(chunk)
    return demux.close()


def split_every(text: str, size: int) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


class TestChannels:
    """Tests for channel routing."""

    def test_plain_answer(self):
        result = feed_all(["Hello ", "world"])
        assert result.content == "Hello world"
        assert result.thinking == ""
        assert result.metadata is None

    def test_full_body_single_chunk(self):
        result = feed_all([FULL_BODY])

        assert result.content == "Hello world"
        assert result.thinking == "Let me think"
        assert result.metadata.model == "claude-sonnet-4-5"
        assert result.metadata.tokens.total == 46
        assert result.metadata.duration_ms == 900

    @pytest.mark.parametrize("offset", range(1, len("Answer" + THINKING_MARKER)))
    def test_marker_recognized_at_any_split(self, offset):
        body = "Answer" + THINKING_MARKER + "why"
        result = feed_all([body[:offset], body[offset:]])

        assert result.content == "Answer"
        assert result.thinking == "why"

    def test_thinking_ends_with_its_chunk(self):
        result = feed_all(
            [
                THINKING_MARKER + "reason one",
                THINKING_MARKER + " two",
                "The answer",
                " is 42",
                METADATA_MARKER + json.dumps(METADATA),
            ]
        )

        assert result.content == "The answer is 42"
        assert result.thinking == "reason one two"
        assert result.metadata is not None

    def test_marker_split_across_chunks(self):
        half = len(THINKING_MARKER) // 2
        demux = StreamDemultiplexer()
        demux.feed("Answer" + THINKING_MARKER[:half])

        assert demux.content == "Answer"
        demux.feed(THINKING_MARKER[half:] + "reasoning")

        assert demux.channel is Channel.THINKING
        assert demux.thinking == "reasoning"

    def test_held_back_prefix_released_when_not_a_marker(self):
        demux = StreamDemultiplexer()
        demux.feed("value ___")
        assert demux.content == "value "
        demux.feed("x")
        assert demux.content == "value ___x"

    def test_close_flushes_held_back_text(self):
        result = feed_all(["trailing ___THI"])
        assert result.content == "trailing ___THI"

    def test_held_back_thinking_text_stays_thinking(self):
        result = feed_all([THINKING_MARKER + "hmm ___", "Answer"])
        assert result.thinking == "hmm ___"
        assert result.content == "Answer"

    def test_answer_and_thinking_interleaved(self):
        result = feed_all(["Hello", THINKING_MARKER + "a", " world", THINKING_MARKER + "b"])
        assert result.content == "Hello world"
        assert result.thinking == "ab"


class TestMetadata:
    """Tests for metadata parsing."""

    def test_malformed_metadata_is_dropped(self, caplog):
        result = feed_all(["Answer", METADATA_MARKER + "{not json"])

        assert result.content == "Answer"
        assert result.metadata is None
        assert "Failed to parse metadata" in caplog.text

    def test_non_object_metadata_is_dropped(self):
        result = feed_all(["Answer" + METADATA_MARKER + "[1, 2]"])
        assert result.metadata is None

    def test_metadata_split_across_chunks(self):
        payload = METADATA_MARKER + json.dumps(METADATA)
        result = feed_all(["Answer"] + split_every(payload, 5))
        assert result.metadata.tokens.input == 12


class TestCallbacks:
    """Tests for incremental delta callbacks."""

    def test_on_delta_receives_accumulated_text(self):
        deltas = []
        demux = StreamDemultiplexer(on_delta=lambda c, t: deltas.append((c, t)))

        demux.feed("Hel")
        demux.feed("lo" + THINKING_MARKER + "hm")

        assert deltas == [("Hel", ""), ("Hello", "hm")]

    def test_close_is_idempotent(self):
        demux = StreamDemultiplexer()
        demux.feed("x")
        assert demux.close() is demux.close()

    def test_feed_after_close_raises(self):
        demux = StreamDemultiplexer()
        demux.close()
        with pytest.raises(RuntimeError):
            demux.feed("x")
