"""Background enrichment: title -> description -> project match."""

import asyncio
from typing import Protocol

from ..errors import GatewayError, NexusError, ParseError
from ..event_bus import IEventBus
from ..gateway import IGatewayClient
from ..logging_config import get_logger
from ..models import Message, Project, Topic
from ..storage import IConversationRepository, IProjectRepository
from .matching import FALLBACK_DESCRIPTION, NO_MATCH, MatchResult, normalize_match, strip_code_fences

logger = get_logger(__name__)

TITLE_REVEAL_DELAY = 0.03  # seconds per revealed character


class ICategorizationPipeline(Protocol):
    """Enrich a freshly created conversation in the background."""

    def schedule(self, conversation_id: str, messages: list[Message]) -> asyncio.Task:
        """Start the pipeline without awaiting it."""
        ...

    def is_scheduled(self, conversation_id: str) -> bool:
        """Whether a run for this conversation is still in flight."""
        ...

    async def drain(self) -> None:
        """Wait for every scheduled run to finish."""
        ...


class CategorizationPipeline:
    """
    Title, description and project match for one conversation.

    Steps run strictly in sequence and each one fails on its own: a failed
    title leaves the default title, a failed description falls back to
    FALLBACK_DESCRIPTION, a failed match leaves the conversation in the
    Miscellaneous bucket. Nothing is raised to the caller.
    """

    def __init__(
        self,
        gateway: IGatewayClient,
        conversations: IConversationRepository,
        projects: IProjectRepository,
        event_bus: IEventBus | None = None,
        reveal_delay: float = TITLE_REVEAL_DELAY,
    ):
        self._gateway = gateway
        self._conversations = conversations
        self._projects = projects
        self._event_bus = event_bus
        self._reveal_delay = reveal_delay
        self._tasks: dict[str, asyncio.Task] = {}

    def schedule(self, conversation_id: str, messages: list[Message]) -> asyncio.Task:
        """Start the pipeline without awaiting it. A run already in flight is reused."""
        running = self._tasks.get(conversation_id)
        if running is not None and not running.done():
            return running

        task = asyncio.create_task(
            self._run_guarded(conversation_id, list(messages)),
            name=f"categorize-{conversation_id}",
        )
        self._tasks[conversation_id] = task
        task.add_done_callback(lambda t: self._forget(conversation_id, t))
        return task

    def is_scheduled(self, conversation_id: str) -> bool:
        task = self._tasks.get(conversation_id)
        return task is not None and not task.done()

    def _forget(self, conversation_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(conversation_id) is task:
            del self._tasks[conversation_id]

    async def drain(self) -> None:
        """Wait for every scheduled run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        await self.drain()

    async def _run_guarded(self, conversation_id: str, messages: list[Message]) -> None:
        try:
            await self.run(conversation_id, messages)
        except asyncio.CancelledError:
            logger.info(f"Categorization cancelled for {conversation_id}")
            raise
        except Exception as e:
            logger.error(f"Categorization crashed for {conversation_id}: {e}", exc_info=True)
            await self._store_fallback_description(conversation_id)

    async def _store_fallback_description(self, conversation_id: str) -> None:
        """Last write after a crash so the conversation is never left undescribed."""
        try:
            conversation = await self._conversations.get_conversation(conversation_id)
            if conversation is not None and conversation.description is None:
                await self._conversations.update_conversation(
                    conversation_id, description=FALLBACK_DESCRIPTION
                )
                await self._emit(Topic.CONVERSATIONS_CHANGED, {"conversation_id": conversation_id})
        except Exception as e:
            logger.error(f"Could not store fallback description for {conversation_id}: {e}")

    async def run(self, conversation_id: str, messages: list[Message]) -> MatchResult:
        """Run all three steps; returns the match that was applied (or NO_MATCH)."""
        logger.info(f"Categorizing conversation {conversation_id}")

        await self.generate_title(conversation_id, messages)
        description = await self.generate_description(messages)
        return await self.categorize(conversation_id, description)

    # Step 1
    async def generate_title(self, conversation_id: str, messages: list[Message]) -> str | None:
        """Fetch the whole title, animate it locally, then store it once."""
        try:
            full_title = await self._gateway.generate_title(messages)
        except NexusError as e:
            logger.error(f"Error generating title for {conversation_id}: {e}")
            return None

        if not full_title:
            return None

        for i in range(1, len(full_title) + 1):
            await self._emit(
                Topic.TITLE_REVEAL,
                {"conversation_id": conversation_id, "title": full_title[:i]},
            )
            await asyncio.sleep(self._reveal_delay)

        updated = await self._conversations.update_conversation(
            conversation_id, title=full_title
        )
        if updated is None:
            logger.info(f"Conversation {conversation_id} deleted before title was stored")
            return None

        await self._emit(Topic.CONVERSATIONS_CHANGED, {"conversation_id": conversation_id})
        return full_title

    # Step 2
    async def generate_description(self, messages: list[Message]) -> str:
        try:
            description = await self._gateway.generate_description(messages)
        except (GatewayError, ParseError) as e:
            logger.error(f"Description generation failed: {e}")
            return FALLBACK_DESCRIPTION

        description = strip_code_fences(description or "")
        return description or FALLBACK_DESCRIPTION

    # Step 3
    async def match(self, description: str, projects: list[Project]) -> MatchResult:
        """Score the description against projects; never raises."""
        if not projects:
            return NO_MATCH

        try:
            raw = await self._gateway.match_project(description, projects)
        except (GatewayError, ParseError) as e:
            logger.error(f"Project match failed: {e}")
            return NO_MATCH

        return normalize_match(
            raw.matched_project_id, raw.confidence, [p.id for p in projects]
        )

    async def categorize(self, conversation_id: str, description: str) -> MatchResult:
        """Store the description and, if still uncategorized, the matched project."""
        conversation = await self._conversations.get_conversation(conversation_id)
        if conversation is None:
            logger.info(f"Conversation {conversation_id} no longer exists, skipping match")
            return NO_MATCH

        result = NO_MATCH
        if conversation.project_id is None:
            projects = await self._projects.get_projects()
            result = await self.match(description, projects)
        else:
            logger.info(f"Conversation {conversation_id} already categorized, skipping match")

        await self._conversations.update_conversation(conversation_id, description=description)

        applied = NO_MATCH
        if result.is_match:
            # Manual moves made while the match was running win
            if await self._conversations.compare_and_set_project(
                conversation_id, None, result.matched_project_id
            ):
                applied = result
                logger.info(
                    f"Conversation {conversation_id} assigned to project "
                    f"{result.matched_project_id} (confidence {result.confidence})"
                )
            else:
                logger.info(
                    f"Discarding match for {conversation_id}: categorized manually "
                    "or project deleted meanwhile"
                )

        await self._emit(Topic.CONVERSATIONS_CHANGED, {"conversation_id": conversation_id})
        return applied

    async def _emit(self, topic: Topic, payload: dict) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(topic, payload, source="categorization")
