"""ChatOrchestrator: drives one user turn from submit to persisted conversation."""

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Protocol

from ..cancellation import CancellationToken, run_cancellable
from ..categorization import ICategorizationPipeline
from ..config import DEFAULT_MODEL
from ..errors import AuthError, GatewayError, TurnCancelled, ValidationError
from ..event_bus import IEventBus
from ..gateway import IGatewayClient
from ..logging_config import get_logger
from ..models import (
    Attachment,
    Conversation,
    Message,
    Project,
    Topic,
    fallback_title,
    generate_id,
)
from ..storage import IConversationRepository, IProjectRepository
from ..streaming import StreamDemultiplexer

logger = get_logger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    PERSISTING = "persisting"
    CANCELLED = "cancelled"


@dataclass
class TurnResult:
    """Outcome of one submit() call."""

    status: Literal["completed", "cancelled", "failed"]
    conversation_id: str | None = None
    message: Message | None = None
    created: bool = False
    error: str | None = None
    needs_setup: bool = False


class IChatOrchestrator(Protocol):
    """Managing the active conversation and its turns."""

    async def submit(
        self, text: str, attachments: list[Attachment] | None = None
    ) -> TurnResult:
        """Send a user message, stream the reply, persist the conversation."""
        ...

    def stop(self) -> bool:
        """Cancel the running turn, keeping whatever was streamed so far."""
        ...


class ChatOrchestrator:
    """
    State machine for chat turns.

    Idle -> Submitting -> Streaming -> (Persisting | Cancelled) -> Idle.
    The orchestrator owns the working copy of the active conversation's
    messages; the store is written once per turn.
    """

    def __init__(
        self,
        gateway: IGatewayClient,
        conversations: IConversationRepository,
        projects: IProjectRepository,
        pipeline: ICategorizationPipeline,
        event_bus: IEventBus,
        model: str = DEFAULT_MODEL,
    ):
        self._gateway = gateway
        self._conversations = conversations
        self._projects = projects
        self._pipeline = pipeline
        self._event_bus = event_bus

        self.selected_model = model
        self.thinking_enabled = False
        self.messages: list[Message] = []
        self.active_conversation_id: str | None = None
        self.error: str | None = None
        self.needs_setup = False

        self._state = TurnState.IDLE
        self._token: CancellationToken | None = None
        self._has_placeholder = False
        self._turn_thinking = False

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state is not TurnState.IDLE

    # Turn
    async def submit(
        self, text: str, attachments: list[Attachment] | None = None
    ) -> TurnResult:
        """Send a user message, stream the reply, persist the conversation."""
        text = text.strip()
        if not text and not attachments:
            raise ValidationError("Message is empty")
        if self.is_busy:
            raise ValidationError("A response is already being generated")

        self._state = TurnState.SUBMITTING
        self.error = None
        self.needs_setup = False
        self._has_placeholder = False
        self._turn_thinking = self.thinking_enabled

        user_message = Message(role="user", content=text, files=list(attachments) if attachments else None)
        request_messages = [*self.messages, user_message]
        self.messages = list(request_messages)

        token = CancellationToken()
        self._token = token
        demux = StreamDemultiplexer(on_delta=self._apply_delta)

        logger.info(
            f"Submitting turn to {self.selected_model}: {text[:100]}",
            extra={"context": {"conversation_id": self.active_conversation_id}},
        )

        try:
            await run_cancellable(self._stream(request_messages, demux, token), token)
        except TurnCancelled:
            return await self._finish_cancelled(demux)
        except GatewayError as e:
            return await self._fail(e)
        except BaseException:
            self._drop_placeholder()
            self._state = TurnState.IDLE
            raise
        finally:
            self._token = None

        if token.cancelled:
            return await self._finish_cancelled(demux)
        return await self._finish_completed(demux)

    def stop(self) -> bool:
        """Cancel the running turn, keeping whatever was streamed so far."""
        if self._token is None or self._state not in (TurnState.SUBMITTING, TurnState.STREAMING):
            return False
        logger.info("Stopping generation")
        self._token.cancel()
        return True

    async def _stream(
        self,
        request_messages: list[Message],
        demux: StreamDemultiplexer,
        token: CancellationToken,
    ) -> None:
        async with self._gateway.open_chat_stream(
            request_messages,
            model=self.selected_model,
            thinking=self._turn_thinking,
            token=token,
        ) as chunks:
            self._state = TurnState.STREAMING
            self.messages.append(
                Message(role="assistant", content="", thinking="" if self._turn_thinking else None)
            )
            self._has_placeholder = True
            await self._emit_messages()

            async for chunk in chunks:
                demux.feed(chunk)
                await self._emit_messages()

    def _apply_delta(self, content: str, thinking: str) -> None:
        """Replace the in-progress assistant message wholesale."""
        if not self._has_placeholder:
            return
        self.messages[-1] = Message(
            role="assistant",
            content=content,
            thinking=thinking if self._turn_thinking else None,
        )

    def _drop_placeholder(self) -> None:
        if self._has_placeholder:
            self.messages.pop()
            self._has_placeholder = False

    async def _finish_completed(self, demux: StreamDemultiplexer) -> TurnResult:
        self._state = TurnState.PERSISTING
        try:
            result = demux.close()
            final = Message(
                role="assistant",
                content=result.content,
                thinking=result.thinking if self._turn_thinking else None,
                metadata=result.metadata,
            )
            self._drop_placeholder()
            self.messages.append(final)

            conversation_id, created = await self._persist()
            if await self._needs_enrichment(conversation_id):
                self._pipeline.schedule(conversation_id, self.messages)

            return TurnResult(
                status="completed",
                conversation_id=conversation_id,
                message=final,
                created=created,
            )
        finally:
            self._state = TurnState.IDLE

    async def _finish_cancelled(self, demux: StreamDemultiplexer) -> TurnResult:
        """Keep the partial answer; cancellation is not rollback."""
        self._state = TurnState.CANCELLED
        try:
            partial = demux.close()
            self._drop_placeholder()

            message = None
            if partial.content or partial.thinking:
                message = Message(
                    role="assistant",
                    content=partial.content,
                    thinking=partial.thinking if self._turn_thinking else None,
                )
                self.messages.append(message)

            # A stop before any text never creates a conversation
            conversation_id, created = None, False
            if message is not None or self.active_conversation_id:
                conversation_id, created = await self._persist()

            logger.info(f"Turn cancelled, kept {len(partial.content)} chars of partial answer")
            return TurnResult(
                status="cancelled",
                conversation_id=conversation_id,
                message=message,
                created=created,
            )
        finally:
            self._state = TurnState.IDLE

    async def _fail(self, error: GatewayError) -> TurnResult:
        """Roll the placeholder back out and surface the error."""
        self._drop_placeholder()
        self.error = error.message or "An error occurred. Please try again."
        self.needs_setup = isinstance(error, AuthError) and error.requires_setup
        self._state = TurnState.IDLE

        logger.error(f"Turn failed: {self.error}")
        await self._event_bus.emit(
            Topic.TURN_FAILED,
            {"error": self.error, "needs_setup": self.needs_setup},
            source="chat_orchestrator",
        )
        await self._emit_messages()
        return TurnResult(status="failed", error=self.error, needs_setup=self.needs_setup)

    async def _needs_enrichment(self, conversation_id: str) -> bool:
        """True until the first completed turn of a conversation has been enriched."""
        if self._pipeline.is_scheduled(conversation_id):
            return False
        conversation = await self._conversations.get_conversation(conversation_id)
        return conversation is not None and conversation.description is None

    async def _persist(self) -> tuple[str, bool]:
        """Write the working messages. Returns (conversation_id, created)."""
        messages = list(self.messages)

        if self.active_conversation_id:
            updated = await self._conversations.update_conversation(
                self.active_conversation_id, messages=messages
            )
            if updated is not None:
                await self._emit_conversations_changed(updated.id)
                return updated.id, False
            logger.warning(
                f"Active conversation {self.active_conversation_id} vanished, creating a new one"
            )

        conversation = Conversation(
            id=generate_id(),
            title=fallback_title(messages),
            messages=messages,
            model=self.selected_model,
            project_id=None,
        )
        await self._conversations.save_conversation(conversation)
        await self._conversations.set_active_conversation_id(conversation.id)
        self.active_conversation_id = conversation.id

        logger.info(f"Created conversation {conversation.id}")
        await self._emit_conversations_changed(conversation.id)
        return conversation.id, True

    # Conversation management
    async def new_chat(self) -> None:
        """Detach from the active conversation and start an empty composer."""
        if self.is_busy:
            raise ValidationError("Stop the current response first")
        self.messages = []
        self.error = None
        self.needs_setup = False
        self.active_conversation_id = None
        await self._conversations.set_active_conversation_id(None)
        await self._emit_messages()

    async def load_conversation(self, conversation_id: str) -> Conversation | None:
        """Make a stored conversation the active one."""
        conversation = await self._conversations.get_conversation(conversation_id)
        if conversation is None:
            return None

        self.active_conversation_id = conversation.id
        self.messages = list(conversation.messages)
        self.error = None
        if conversation.model:
            self.selected_model = conversation.model
        await self._conversations.set_active_conversation_id(conversation.id)
        await self._emit_messages()
        return conversation

    async def restore_active(self) -> Conversation | None:
        """Reload the conversation that was active when the app last ran."""
        active_id = await self._conversations.get_active_conversation_id()
        if not active_id:
            return None
        return await self.load_conversation(active_id)

    async def delete_conversation(self, conversation_id: str) -> bool:
        deleted = await self._conversations.delete_conversation(conversation_id)
        if conversation_id == self.active_conversation_id:
            await self.new_chat()
        if deleted:
            await self._emit_conversations_changed(conversation_id)
        return deleted

    async def rename_conversation(self, conversation_id: str, title: str) -> Conversation | None:
        title = title.strip()
        if not title:
            raise ValidationError("Title cannot be empty")
        updated = await self._conversations.update_conversation(conversation_id, title=title)
        if updated is not None:
            await self._emit_conversations_changed(conversation_id)
        return updated

    async def move_conversation(
        self, conversation_id: str, project_id: str | None
    ) -> Conversation | None:
        """Manual categorization; always wins over the background pipeline."""
        if project_id is not None and await self._projects.get_project(project_id) is None:
            raise ValidationError(f"Unknown project: {project_id}")
        updated = await self._conversations.update_conversation(
            conversation_id, project_id=project_id
        )
        if updated is not None:
            await self._emit_conversations_changed(conversation_id)
        return updated

    async def save_project(self, project: Project) -> None:
        await self._projects.save_project(project)
        await self._emit_conversations_changed(None)

    async def delete_project(self, project_id: str) -> bool:
        deleted = await self._projects.delete_project(project_id)
        if deleted:
            await self._emit_conversations_changed(None)
        return deleted

    # Notifications
    async def _emit_messages(self) -> None:
        last = self.messages[-1] if self.messages else None
        await self._event_bus.emit(
            Topic.MESSAGES_UPDATED,
            {
                "conversation_id": self.active_conversation_id,
                "message_count": len(self.messages),
                "state": self._state.value,
                "content": last.content if last else "",
                "thinking": last.thinking if last else None,
            },
            source="chat_orchestrator",
        )

    async def _emit_conversations_changed(self, conversation_id: str | None) -> None:
        await self._event_bus.emit(
            Topic.CONVERSATIONS_CHANGED,
            {"conversation_id": conversation_id},
            source="chat_orchestrator",
        )
