"""Pytest configuration and fixtures."""

import asyncio
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class FakeGateway:
    """
    Scripted stand-in for GatewayClient.

    chat_chunks are yielded in order; when hold_after is set the stream
    blocks after that many chunks until release() is called (or the turn is
    cancelled). chat_error is raised when the stream is opened and
    stream_error after the last chunk.
    """

    def __init__(self):
        self.chat_chunks: list[str] = []
        self.chat_error: Exception | None = None
        self.stream_error: Exception | None = None
        self.hold_after: int | None = None
        self.chunks_sent = asyncio.Event()
        self._release = asyncio.Event()
        self.chat_calls: list[dict] = []
        self.stream_closed = False

        self.generate_title = AsyncMock(return_value="Generated Title")
        self.generate_description = AsyncMock(return_value="User wants help with Python code")
        self.match_project = AsyncMock()
        self.close = AsyncMock()

    def release(self) -> None:
        self._release.set()

    @asynccontextmanager
    async def open_chat_stream(self, messages, model, thinking=False, token=None, **kwargs):
        self.chat_calls.append(
            {"messages": list(messages), "model": model, "thinking": thinking}
        )
        if self.chat_error is not None:
            raise self.chat_error
        try:
            yield self._chunks()
        finally:
            self.stream_closed = True

    async def _chunks(self):
        for index, chunk in enumerate(self.chat_chunks):
            if self.hold_after is not None and index == self.hold_after:
                self.chunks_sent.set()
                await self._release.wait()
            yield chunk
            await asyncio.sleep(0)
        self.chunks_sent.set()
        if self.stream_error is not None:
            raise self.stream_error


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from nexus.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    """Create EventBus."""
    from nexus.event_bus import EventBus

    return EventBus()


@pytest.fixture
def recorded_events(event_bus):
    """Collect every bus message, per topic."""
    from nexus.models import Topic

    events: dict = {topic: [] for topic in Topic}

    def make_handler(topic):
        async def handler(msg):
            events[topic].append(msg.payload)

        return handler

    for topic in Topic:
        event_bus.subscribe(topic, make_handler(topic))
    return events


@pytest.fixture
def fake_gateway():
    """Create scripted gateway."""
    return FakeGateway()


@pytest.fixture
def pipeline(fake_gateway, storage, event_bus):
    """Create CategorizationPipeline with no reveal delay."""
    from nexus.categorization import CategorizationPipeline

    return CategorizationPipeline(
        gateway=fake_gateway,
        conversations=storage,
        projects=storage,
        event_bus=event_bus,
        reveal_delay=0,
    )


@pytest_asyncio.fixture
async def orchestrator(fake_gateway, storage, pipeline, event_bus):
    """Create ChatOrchestrator for testing."""
    from nexus.chat import ChatOrchestrator

    orch = ChatOrchestrator(
        gateway=fake_gateway,
        conversations=storage,
        projects=storage,
        pipeline=pipeline,
        event_bus=event_bus,
    )
    yield orch
    await pipeline.cancel_all()


@pytest.fixture
def mock_provider():
    """Create mock LLM provider for the gateway routes."""
    provider = Mock()
    provider.complete = AsyncMock(return_value="Test response")
    provider.open_chat_stream = AsyncMock()
    provider.open_text_stream = AsyncMock()
    provider.close = AsyncMock()
    return provider
