"""Application bootstrap and lifecycle management."""

import os
from typing import Literal, Protocol

from .categorization import CategorizationPipeline
from .chat import ChatOrchestrator
from .config import resolve_db_path
from .event_bus import EventBus
from .export import conversation_to_json, conversation_to_markdown
from .gateway import GatewayClient, IGatewayClient
from .logging_config import get_logger
from .storage import Storage

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Clear all persisted data and start from an empty composer."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        gateway_url: str | None = None,
        gateway: IGatewayClient | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._gateway_url = gateway_url
        self._injected_gateway = gateway

        # Components (will be initialized in start())
        self._storage: Storage | None = None
        self._event_bus: EventBus | None = None
        self._gateway: IGatewayClient | None = None
        self._pipeline: CategorizationPipeline | None = None
        self._orchestrator: ChatOrchestrator | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. EventBus (no dependencies)
        self._event_bus = EventBus()

        # 3. Gateway client
        self._gateway = self._injected_gateway or GatewayClient(base_url=self._gateway_url)
        logger.info("Gateway client initialized")

        # 4. Pipeline (depends on Gateway, Storage, EventBus)
        self._pipeline = CategorizationPipeline(
            gateway=self._gateway,
            conversations=self._storage,
            projects=self._storage,
            event_bus=self._event_bus,
        )

        # 5. Orchestrator (depends on everything above)
        self._orchestrator = ChatOrchestrator(
            gateway=self._gateway,
            conversations=self._storage,
            projects=self._storage,
            pipeline=self._pipeline,
            event_bus=self._event_bus,
        )
        await self._orchestrator.restore_active()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._orchestrator:
            self._orchestrator.stop()
        if self._pipeline:
            await self._pipeline.drain()
        if self._gateway and self._injected_gateway is None:
            await self._gateway.close()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Clear all persisted data and start from an empty composer."""
        if self._orchestrator:
            self._orchestrator.stop()
        if self._pipeline:
            await self._pipeline.cancel_all()
        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")
        if self._orchestrator:
            await self._orchestrator.new_chat()
            logger.info("Reset complete")

    async def export_conversation(
        self, conversation_id: str, fmt: Literal["markdown", "json"] = "markdown"
    ) -> str | None:
        """Render a stored conversation; None if it does not exist."""
        conversation = await self.storage.get_conversation(conversation_id)
        if conversation is None:
            return None
        if fmt == "json":
            return conversation_to_json(conversation)

        project = None
        if conversation.project_id:
            project = await self.storage.get_project(conversation.project_id)
        return conversation_to_markdown(conversation, project)

    @property
    def storage(self) -> Storage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def event_bus(self) -> EventBus:
        if not self._event_bus:
            raise RuntimeError("Application not started")
        return self._event_bus

    @property
    def pipeline(self) -> CategorizationPipeline:
        if not self._pipeline:
            raise RuntimeError("Application not started")
        return self._pipeline

    @property
    def orchestrator(self) -> ChatOrchestrator:
        """Get chat orchestrator instance."""
        if not self._orchestrator:
            raise RuntimeError("Application not started")
        return self._orchestrator
