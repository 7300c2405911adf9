"""Nexus chat core module."""

from .app import Application, IApplication
from .attachments import encode_attachment, load_attachments
from .cancellation import CancellationToken
from .categorization import CategorizationPipeline, ICategorizationPipeline, MatchResult
from .chat import ChatOrchestrator, IChatOrchestrator, TurnResult, TurnState
from .errors import (
    AuthError,
    GatewayError,
    NetworkError,
    NexusError,
    ParseError,
    RateLimitError,
    TurnCancelled,
    UnknownGatewayError,
    ValidationError,
)
from .event_bus import EventBus, IEventBus
from .gateway import CompletionOptions, GatewayClient, IGatewayClient
from .models import (
    Attachment,
    BusMessage,
    Conversation,
    Message,
    MessageMetadata,
    Project,
    Theme,
    TokenUsage,
    Topic,
)
from .storage import IConversationRepository, IProjectRepository, Storage
from .streaming import StreamDemultiplexer, StreamResult

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "Attachment",
    "BusMessage",
    "Conversation",
    "Message",
    "MessageMetadata",
    "Project",
    "Theme",
    "TokenUsage",
    "Topic",
    # Errors
    "NexusError",
    "ValidationError",
    "ParseError",
    "TurnCancelled",
    "GatewayError",
    "AuthError",
    "RateLimitError",
    "NetworkError",
    "UnknownGatewayError",
    # Components
    "CancellationToken",
    "encode_attachment",
    "load_attachments",
    "IConversationRepository",
    "IProjectRepository",
    "Storage",
    "IEventBus",
    "EventBus",
    "CompletionOptions",
    "IGatewayClient",
    "GatewayClient",
    "StreamDemultiplexer",
    "StreamResult",
    "ICategorizationPipeline",
    "CategorizationPipeline",
    "MatchResult",
    "IChatOrchestrator",
    "ChatOrchestrator",
    "TurnResult",
    "TurnState",
]
