"""Conversation and project data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..errors import ValidationError
from .messages import Message

TITLE_MAX_LENGTH = 50
DEFAULT_TITLE = "New Conversation"

PROJECT_COLORS = [
    "#FFD50F",  # Electric Yellow
    "#FD765B",  # Vibrant Coral
    "#999999",  # Neutral Gray
    "#FFC107",  # Amber
    "#FF6F91",  # Pink
    "#4ECDC4",  # Teal
    "#95E1D3",  # Mint
    "#F38181",  # Light Coral
]


class Theme(str, Enum):
    """Persisted UI brightness preference."""

    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return str(uuid.uuid4())


def fallback_title(messages: list[Message]) -> str:
    """Default title: the first user message, truncated."""
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return DEFAULT_TITLE

    content = first_user.content.strip()
    if not content:
        return DEFAULT_TITLE
    if len(content) <= TITLE_MAX_LENGTH:
        return content
    return content[:TITLE_MAX_LENGTH] + "..."


def assign_project_color(project_id: str) -> str:
    """Deterministic palette color for a project id (31x string hash)."""
    value = 0
    for char in project_id:
        value = (ord(char) + ((value << 5) - value)) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 1 << 32
    return PROJECT_COLORS[abs(value) % len(PROJECT_COLORS)]


def _parse_dt(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


@dataclass
class Conversation:
    """A persisted conversation. project_id None means the Miscellaneous bucket."""

    id: str
    title: str
    messages: list[Message] = field(default_factory=list)
    model: str | None = None
    project_id: str | None = None
    description: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "messages": [m.to_dict() for m in self.messages],
            "model": self.model,
            "projectId": self.project_id,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        return cls(
            id=data["id"],
            title=data.get("title", DEFAULT_TITLE),
            messages=[Message.from_dict(m) for m in data.get("messages", [])],
            model=data.get("model"),
            project_id=data.get("projectId"),
            description=data.get("description"),
            created_at=_parse_dt(data["createdAt"]),
            updated_at=_parse_dt(data["updatedAt"]),
        )


@dataclass
class Project:
    """A user-defined bucket; description doubles as the matching signal."""

    id: str
    name: str
    description: str
    color: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, name: str, description: str, color: str | None = None) -> "Project":
        """Build a new project from user input, trimming both text fields."""
        name = name.strip()
        description = description.strip()
        if not name:
            raise ValidationError("Project name is required")
        if not description:
            raise ValidationError("Project description is required")

        project_id = generate_id()
        return cls(
            id=project_id,
            name=name,
            description=description,
            color=color or assign_project_color(project_id),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description", ""),
            color=data.get("color") or assign_project_color(data["id"]),
            created_at=_parse_dt(data["createdAt"]),
            updated_at=_parse_dt(data["updatedAt"]),
        )
