"""Message-related data models."""

from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass(frozen=True)
class Attachment:
    """A file attached to a user message, carried inline as base64."""

    name: str
    mime_type: str
    size_bytes: int
    data: str  # base64, no data: URL prefix

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.mime_type,
            "size": self.size_bytes,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Attachment":
        return cls(
            name=data["name"],
            mime_type=data["type"],
            size_bytes=int(data["size"]),
            data=data["data"],
        )


@dataclass
class TokenUsage:
    """Token counts reported by the gateway for one turn."""

    input: int = 0
    output: int = 0
    total: int = 0


@dataclass
class MessageMetadata:
    """Usage and timing sent by the gateway after the last answer chunk."""

    model: str | None = None
    tokens: TokenUsage | None = None
    duration_ms: int | None = None
    timestamp: int | None = None  # epoch milliseconds, as sent on the wire

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.model is not None:
            data["model"] = self.model
        if self.tokens is not None:
            data["tokens"] = {
                "input": self.tokens.input,
                "output": self.tokens.output,
                "total": self.tokens.total,
            }
        if self.duration_ms is not None:
            data["duration"] = self.duration_ms
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MessageMetadata":
        tokens = data.get("tokens")
        return cls(
            model=data.get("model"),
            tokens=(
                TokenUsage(
                    input=int(tokens.get("input", 0)),
                    output=int(tokens.get("output", 0)),
                    total=int(tokens.get("total", 0)),
                )
                if isinstance(tokens, dict)
                else None
            ),
            duration_ms=data.get("duration"),
            timestamp=data.get("timestamp"),
        )


@dataclass
class Message:
    """A single message in a conversation."""

    role: Literal["user", "assistant"]
    content: str
    thinking: str | None = None
    files: list[Attachment] | None = None
    metadata: MessageMetadata | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.thinking is not None:
            data["thinking"] = self.thinking
        if self.files is not None:
            data["files"] = [f.to_dict() for f in self.files]
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        files = data.get("files")
        metadata = data.get("metadata")
        return cls(
            role=data["role"],
            content=data.get("content", ""),
            thinking=data.get("thinking"),
            files=[Attachment.from_dict(f) for f in files] if files is not None else None,
            metadata=MessageMetadata.from_dict(metadata) if metadata is not None else None,
        )
