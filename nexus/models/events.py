"""Event bus data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Topic(str, Enum):
    """EventBus topics consumed by the front end."""

    MESSAGES_UPDATED = "messages_updated"  # working message list changed
    CONVERSATIONS_CHANGED = "conversations_changed"  # store list changed
    TITLE_REVEAL = "title_reveal"  # one frame of the title animation
    TURN_FAILED = "turn_failed"


@dataclass
class BusMessage:
    """A notification exchanged through EventBus."""

    id: str
    topic: Topic
    payload: dict  # varies by topic
    source: str  # component that published
    timestamp: datetime
