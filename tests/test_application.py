"""Tests for Application."""

import json

import pytest

from nexus.app import Application
from nexus.gateway import GatewayClient, RawMatch
from nexus.models import Project


class TestApplicationStart:
    """Tests for Application.start()."""

    async def test_start_initializes_components(self):
        """Test that start initializes all components."""
        app = Application(db_path=":memory:")
        await app.start()

        assert app._storage is not None
        assert app._event_bus is not None
        assert isinstance(app._gateway, GatewayClient)
        assert app.pipeline._gateway is app._gateway
        assert app.orchestrator._pipeline is app.pipeline
        assert app.orchestrator._event_bus is app.event_bus

        await app.stop()

    def test_properties_before_start_raise(self):
        app = Application(db_path=":memory:")
        with pytest.raises(RuntimeError, match="not started"):
            _ = app.orchestrator


class TestApplicationFlow:
    """Tests for a full turn through the wired application."""

    @pytest.fixture
    async def app(self, fake_gateway):
        application = Application(db_path=":memory:", gateway=fake_gateway)
        await application.start()
        yield application
        await application.stop()

    async def test_turn_then_export(self, app, fake_gateway):
        project = Project.create("Python", "Python questions")
        await app.orchestrator.save_project(project)
        fake_gateway.chat_chunks = ["Use a venv."]
        fake_gateway.match_project.return_value = RawMatch(project.id, 0.8)

        result = await app.orchestrator.submit("How do I isolate dependencies?")
        await app.pipeline.drain()

        markdown = await app.export_conversation(result.conversation_id)
        assert markdown.startswith("# Generated Title")
        assert "**Project:** Python" in markdown
        assert "Use a venv." in markdown

        exported = json.loads(await app.export_conversation(result.conversation_id, fmt="json"))
        assert exported["projectId"] == project.id
        assert exported["description"] == "User wants help with Python code"

    async def test_export_missing(self, app):
        assert await app.export_conversation("missing") is None

    async def test_reset_clears_everything(self, app, fake_gateway):
        fake_gateway.chat_chunks = ["Reply"]
        fake_gateway.match_project.return_value = RawMatch(None, 0.0)
        await app.orchestrator.submit("Hi")

        await app.reset()

        assert await app.storage.get_conversations() == []
        assert app.orchestrator.messages == []
        assert app.orchestrator.active_conversation_id is None

    async def test_stop_does_not_close_injected_gateway(self, fake_gateway):
        application = Application(db_path=":memory:", gateway=fake_gateway)
        await application.start()
        await application.stop()
        fake_gateway.close.assert_not_called()
