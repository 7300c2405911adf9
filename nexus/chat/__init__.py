"""Chat orchestration module."""

from .orchestrator import ChatOrchestrator, IChatOrchestrator, TurnResult, TurnState

__all__ = ["ChatOrchestrator", "IChatOrchestrator", "TurnResult", "TurnState"]
