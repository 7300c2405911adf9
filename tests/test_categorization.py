"""Tests for CategorizationPipeline."""

import asyncio

import pytest

from nexus.categorization import FALLBACK_DESCRIPTION, NO_MATCH
from nexus.errors import AuthError, NetworkError, ParseError
from nexus.gateway import RawMatch
from nexus.models import Conversation, Message, Project, Topic

MESSAGES = [
    Message(role="user", content="How do I fix this Python import error?"),
    Message(role="assistant", content="Check your sys.path."),
]


async def seed(storage, project_ids=("p1",), conversation_project=None) -> Conversation:
    for project_id in project_ids:
        await storage.save_project(
            Project(id=project_id, name=project_id, description="Python work", color="#999999")
        )
    conversation = Conversation(
        id="c1",
        title="How do I fix this Python import error?",
        messages=list(MESSAGES),
        model="claude-sonnet-4-5",
        project_id=conversation_project,
    )
    await storage.save_conversation(conversation)
    return conversation


class TestTitle:
    """Tests for title generation and reveal."""

    async def test_title_revealed_then_stored_once(self, pipeline, storage, fake_gateway, recorded_events):
        await seed(storage)
        fake_gateway.generate_title.return_value = "Fix Import"

        title = await pipeline.generate_title("c1", MESSAGES)

        assert title == "Fix Import"
        frames = [p["title"] for p in recorded_events[Topic.TITLE_REVEAL]]
        assert frames == ["F", "Fi", "Fix", "Fix ", "Fix I", "Fix Im", "Fix Imp", "Fix Impo",
                          "Fix Impor", "Fix Import"]
        assert (await storage.get_conversation("c1")).title == "Fix Import"

    async def test_title_failure_keeps_default(self, pipeline, storage, fake_gateway, recorded_events):
        await seed(storage)
        fake_gateway.generate_title.side_effect = AuthError("Invalid API key")

        assert await pipeline.generate_title("c1", MESSAGES) is None
        assert recorded_events[Topic.TITLE_REVEAL] == []
        assert (await storage.get_conversation("c1")).title.startswith("How do I fix")

    async def test_title_for_deleted_conversation(self, pipeline, fake_gateway):
        assert await pipeline.generate_title("missing", MESSAGES) is None


class TestDescription:
    """Tests for description generation."""

    async def test_strips_code_fences(self, pipeline, fake_gateway):
        fake_gateway.generate_description.return_value = "```\nFixing Python imports\n```"
        assert await pipeline.generate_description(MESSAGES) == "Fixing Python imports"

    @pytest.mark.parametrize(
        "outcome", [NetworkError("down"), ParseError("bad json"), ""]
    )
    async def test_falls_back(self, pipeline, fake_gateway, outcome):
        if isinstance(outcome, Exception):
            fake_gateway.generate_description.side_effect = outcome
        else:
            fake_gateway.generate_description.return_value = outcome
        assert await pipeline.generate_description(MESSAGES) == FALLBACK_DESCRIPTION


class TestMatch:
    """Tests for project matching."""

    async def test_no_projects_skips_gateway(self, pipeline, fake_gateway):
        assert await pipeline.match("anything", []) == NO_MATCH
        fake_gateway.match_project.assert_not_called()

    async def test_unknown_project_is_discarded(self, pipeline, fake_gateway):
        fake_gateway.match_project.return_value = RawMatch("proj-999", 0.95)
        projects = [Project(id="p1", name="Work", description="d", color="#999999")]

        assert await pipeline.match("desc", projects) == NO_MATCH

    async def test_confidence_clamped(self, pipeline, fake_gateway):
        fake_gateway.match_project.return_value = RawMatch("p1", 1.4)
        projects = [Project(id="p1", name="Work", description="d", color="#999999")]

        result = await pipeline.match("desc", projects)
        assert result.confidence == 1.0
        assert result.is_match


class TestRun:
    """End-to-end pipeline runs."""

    async def test_assigns_matched_project(self, pipeline, storage, fake_gateway):
        await seed(storage)
        fake_gateway.match_project.return_value = RawMatch("p1", 0.9)

        result = await pipeline.run("c1", MESSAGES)

        assert result.matched_project_id == "p1"
        stored = await storage.get_conversation("c1")
        assert stored.title == "Generated Title"
        assert stored.description == "User wants help with Python code"
        assert stored.project_id == "p1"

    async def test_low_confidence_stays_uncategorized(self, pipeline, storage, fake_gateway):
        await seed(storage)
        fake_gateway.match_project.return_value = RawMatch("p1", 0.5)

        result = await pipeline.run("c1", MESSAGES)

        assert not result.is_match
        stored = await storage.get_conversation("c1")
        assert stored.project_id is None
        assert stored.description == "User wants help with Python code"

    async def test_unauthorized_everywhere_degrades_to_defaults(self, pipeline, storage, fake_gateway):
        await seed(storage)
        fake_gateway.generate_title.side_effect = AuthError("Invalid API key")
        fake_gateway.generate_description.side_effect = AuthError("Invalid API key")
        fake_gateway.match_project.side_effect = AuthError("Invalid API key")

        result = await pipeline.run("c1", MESSAGES)

        assert result == NO_MATCH
        stored = await storage.get_conversation("c1")
        assert stored.description == FALLBACK_DESCRIPTION
        assert stored.project_id is None

    async def test_manual_move_during_match_wins(self, pipeline, storage, fake_gateway):
        await seed(storage, project_ids=("p1", "p2"))
        match_started = asyncio.Event()
        release = asyncio.Event()

        async def slow_match(description, projects):
            match_started.set()
            await release.wait()
            return RawMatch("p1", 0.9)

        fake_gateway.match_project.side_effect = slow_match

        task = pipeline.schedule("c1", MESSAGES)
        await match_started.wait()
        await storage.update_conversation("c1", project_id="p2")
        release.set()
        await task

        stored = await storage.get_conversation("c1")
        assert stored.project_id == "p2"
        assert stored.description == "User wants help with Python code"

    async def test_already_categorized_skips_match(self, pipeline, storage, fake_gateway):
        await seed(storage, conversation_project="p1")

        await pipeline.run("c1", MESSAGES)

        fake_gateway.match_project.assert_not_called()
        assert (await storage.get_conversation("c1")).project_id == "p1"

    async def test_deleted_conversation_is_skipped(self, pipeline, storage, fake_gateway):
        await seed(storage)
        fake_gateway.match_project.return_value = RawMatch("p1", 0.9)
        await storage.delete_conversation("c1")

        assert await pipeline.run("c1", MESSAGES) == NO_MATCH
        assert await storage.get_conversations() == []


class TestScheduling:
    """Tests for background scheduling."""

    async def test_schedule_and_drain(self, pipeline, storage, fake_gateway):
        await seed(storage)
        fake_gateway.match_project.return_value = RawMatch(None, 0.1)

        pipeline.schedule("c1", MESSAGES)
        await pipeline.drain()

        assert (await storage.get_conversation("c1")).title == "Generated Title"

    async def test_crash_is_logged_not_raised(self, pipeline, storage, fake_gateway, caplog):
        await seed(storage)
        fake_gateway.match_project.side_effect = RuntimeError("unexpected")

        task = pipeline.schedule("c1", MESSAGES)
        await task

        assert "Categorization crashed for c1" in caplog.text
        stored = await storage.get_conversation("c1")
        assert stored.description == FALLBACK_DESCRIPTION
        assert stored.project_id is None

    async def test_crash_keeps_description_already_stored(self, pipeline, storage, fake_gateway):
        await seed(storage)
        await storage.update_conversation("c1", description="Earlier description")
        fake_gateway.generate_title.side_effect = RuntimeError("unexpected")

        await pipeline.schedule("c1", MESSAGES)

        assert (await storage.get_conversation("c1")).description == "Earlier description"

    async def test_schedule_reuses_run_in_flight(self, pipeline, storage, fake_gateway):
        await seed(storage)
        fake_gateway.match_project.return_value = RawMatch(None, 0.1)

        first = pipeline.schedule("c1", MESSAGES)
        assert pipeline.is_scheduled("c1") is True
        assert pipeline.schedule("c1", MESSAGES) is first
        await pipeline.drain()

        assert pipeline.is_scheduled("c1") is False
        fake_gateway.generate_title.assert_awaited_once()
