"""Storage module."""

from .storage import (
    MISCELLANEOUS_BUCKET,
    IConversationRepository,
    IProjectRepository,
    Storage,
)

__all__ = [
    "MISCELLANEOUS_BUCKET",
    "IConversationRepository",
    "IProjectRepository",
    "Storage",
]
