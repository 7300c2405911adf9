"""SQLite-backed key-value store for conversations, projects and UI state."""

import asyncio
import json
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

from ..config import resolve_db_path
from ..logging_config import get_logger
from ..models import Conversation, Project, Theme

logger = get_logger(__name__)

CONVERSATIONS_KEY = "nexus-conversations"
ACTIVE_CONVERSATION_KEY = "nexus-active-conversation"
THEME_KEY = "nexus-theme"
PROJECTS_KEY = "nexus-projects"
PROJECT_EXPANDED_PREFIX = "nexus-project-expanded-"
MISCELLANEOUS_BUCKET = "miscellaneous"

_UPDATABLE_FIELDS = {"title", "description", "messages", "model", "project_id"}


class IConversationRepository(Protocol):
    """Conversation persistence. Last write wins, keyed by conversation id."""

    async def get_conversations(self) -> list[Conversation]:
        """Get all conversations, most recently created first."""
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        ...

    async def save_conversation(self, conversation: Conversation) -> None:
        """Insert or replace a conversation."""
        ...

    async def update_conversation(
        self, conversation_id: str, **changes: Any
    ) -> Conversation | None:
        """Apply field changes to the stored copy and bump updated_at."""
        ...

    async def compare_and_set_project(
        self, conversation_id: str, expected: str | None, project_id: str | None
    ) -> bool:
        """Set project_id only if it still equals expected."""
        ...

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation. Returns False if it did not exist."""
        ...

    async def get_active_conversation_id(self) -> str | None:
        ...

    async def set_active_conversation_id(self, conversation_id: str | None) -> None:
        ...


class IProjectRepository(Protocol):
    """Project persistence."""

    async def get_projects(self) -> list[Project]:
        ...

    async def get_project(self, project_id: str) -> Project | None:
        ...

    async def save_project(self, project: Project) -> None:
        ...

    async def delete_project(self, project_id: str) -> bool:
        """Delete a project and move its conversations to Miscellaneous."""
        ...


class Storage:
    """
    Local key-value store on SQLite.

    Each top-level key holds one JSON document (the conversation array, the
    project array, the active id, the theme, expand flags). Read-modify-write
    operations run under an asyncio.Lock so that a compare-and-set is atomic
    with respect to other coroutines of this process.
    """

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        """Open database and create the kv table."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    # Raw key-value access
    async def get_item(self, key: str, default: Any = None) -> Any:
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        cursor = await self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if not row:
            return default
        return json.loads(row[0])

    async def set_item(self, key: str, value: Any) -> None:
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute(
            """
            INSERT OR REPLACE INTO kv (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """,
            (key, json.dumps(value, ensure_ascii=False)),
        )
        await self._conn.commit()

    async def remove_item(self, key: str) -> None:
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await self._conn.commit()

    # Conversations
    async def get_conversations(self) -> list[Conversation]:
        """Get all conversations, most recently created first."""
        raw = await self.get_item(CONVERSATIONS_KEY, [])
        return [Conversation.from_dict(item) for item in raw]

    async def _save_conversations(self, conversations: list[Conversation]) -> None:
        await self.set_item(CONVERSATIONS_KEY, [c.to_dict() for c in conversations])

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        for conversation in await self.get_conversations():
            if conversation.id == conversation_id:
                return conversation
        return None

    async def save_conversation(self, conversation: Conversation) -> None:
        """Insert or replace a conversation. New conversations go first."""
        async with self._lock:
            conversations = await self.get_conversations()
            for index, existing in enumerate(conversations):
                if existing.id == conversation.id:
                    conversations[index] = conversation
                    break
            else:
                conversations.insert(0, conversation)
            await self._save_conversations(conversations)

    async def update_conversation(
        self, conversation_id: str, **changes: Any
    ) -> Conversation | None:
        """Apply field changes to the stored copy and bump updated_at."""
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update conversation fields: {sorted(unknown)}")

        async with self._lock:
            conversations = await self.get_conversations()
            for conversation in conversations:
                if conversation.id == conversation_id:
                    for name, value in changes.items():
                        setattr(conversation, name, value)
                    conversation.touch()
                    await self._save_conversations(conversations)
                    return conversation
        return None

    async def compare_and_set_project(
        self, conversation_id: str, expected: str | None, project_id: str | None
    ) -> bool:
        """
        Set project_id only if it still equals expected.

        A non-null project_id must also refer to a project that still exists.
        """
        async with self._lock:
            if project_id is not None and await self.get_project(project_id) is None:
                return False

            conversations = await self.get_conversations()
            for conversation in conversations:
                if conversation.id != conversation_id:
                    continue
                if conversation.project_id != expected:
                    return False
                conversation.project_id = project_id
                conversation.touch()
                await self._save_conversations(conversations)
                return True
        return False

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation. Returns False if it did not exist."""
        async with self._lock:
            conversations = await self.get_conversations()
            remaining = [c for c in conversations if c.id != conversation_id]
            if len(remaining) == len(conversations):
                return False
            await self._save_conversations(remaining)
            return True

    # Active conversation
    async def get_active_conversation_id(self) -> str | None:
        return await self.get_item(ACTIVE_CONVERSATION_KEY)

    async def set_active_conversation_id(self, conversation_id: str | None) -> None:
        if conversation_id:
            await self.set_item(ACTIVE_CONVERSATION_KEY, conversation_id)
        else:
            await self.remove_item(ACTIVE_CONVERSATION_KEY)

    # Projects
    async def get_projects(self) -> list[Project]:
        raw = await self.get_item(PROJECTS_KEY, [])
        return [Project.from_dict(item) for item in raw]

    async def get_project(self, project_id: str) -> Project | None:
        for project in await self.get_projects():
            if project.id == project_id:
                return project
        return None

    async def save_project(self, project: Project) -> None:
        """Insert or replace a project. New projects are appended."""
        async with self._lock:
            projects = await self.get_projects()
            for index, existing in enumerate(projects):
                if existing.id == project.id:
                    projects[index] = project
                    break
            else:
                projects.append(project)
            await self.set_item(PROJECTS_KEY, [p.to_dict() for p in projects])

    async def delete_project(self, project_id: str) -> bool:
        """Delete a project and move its conversations to Miscellaneous."""
        async with self._lock:
            projects = await self.get_projects()
            remaining = [p for p in projects if p.id != project_id]
            if len(remaining) == len(projects):
                return False

            await self.set_item(PROJECTS_KEY, [p.to_dict() for p in remaining])

            conversations = await self.get_conversations()
            moved = 0
            for conversation in conversations:
                if conversation.project_id == project_id:
                    conversation.project_id = None
                    conversation.touch()
                    moved += 1
            if moved:
                await self._save_conversations(conversations)

            await self.remove_item(PROJECT_EXPANDED_PREFIX + project_id)

        logger.info(f"Deleted project {project_id}, moved {moved} conversations")
        return True

    # UI state
    async def get_theme(self) -> Theme:
        value = await self.get_item(THEME_KEY)
        try:
            return Theme(value) if value else Theme.SYSTEM
        except ValueError:
            return Theme.SYSTEM

    async def set_theme(self, theme: Theme) -> None:
        await self.set_item(THEME_KEY, Theme(theme).value)

    async def is_expanded(self, bucket_id: str = MISCELLANEOUS_BUCKET) -> bool:
        """Sidebar expand state of a project (or the Miscellaneous bucket)."""
        return bool(await self.get_item(PROJECT_EXPANDED_PREFIX + bucket_id, False))

    async def set_expanded(self, bucket_id: str, expanded: bool) -> None:
        await self.set_item(PROJECT_EXPANDED_PREFIX + bucket_id, bool(expanded))

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute("DELETE FROM kv")
        await self._conn.commit()
