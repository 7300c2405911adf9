"""Core data models for Nexus."""

from .conversations import (
    PROJECT_COLORS,
    Conversation,
    Project,
    Theme,
    assign_project_color,
    fallback_title,
    generate_id,
    utcnow,
)
from .events import BusMessage, Topic
from .messages import Attachment, Message, MessageMetadata, TokenUsage

__all__ = [
    # Messages
    "Attachment",
    "Message",
    "MessageMetadata",
    "TokenUsage",
    # Conversations
    "Conversation",
    "Project",
    "Theme",
    "PROJECT_COLORS",
    "assign_project_color",
    "fallback_title",
    "generate_id",
    "utcnow",
    # Events
    "BusMessage",
    "Topic",
]
