"""Export conversations to Markdown and JSON formats."""

import json

from .models import Conversation, Project


def format_duration(duration_ms: int | None) -> str:
    """Human-readable response time, e.g. '850ms' or '2.4s'."""
    if duration_ms is None:
        return ""
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    return f"{duration_ms / 1000:.1f}s"


def conversation_to_markdown(conversation: Conversation, project: Project | None = None) -> str:
    """Export a conversation as clean Markdown."""
    lines = [f"# {conversation.title}", ""]

    if conversation.description:
        lines.append(f"_{conversation.description}_")
        lines.append("")
    lines.append(f"**Project:** {project.name if project else 'Miscellaneous'}")
    if conversation.model:
        lines.append(f"**Model:** {conversation.model}")
    lines.append(f"**Created:** {conversation.created_at.isoformat()}")
    lines.append(f"**Updated:** {conversation.updated_at.isoformat()}")
    lines.append(f"**Messages:** {len(conversation.messages)}")
    lines.extend(["", "---", ""])

    for msg in conversation.messages:
        lines.append(f"## {msg.role.capitalize()}")
        lines.append("")
        if msg.thinking:
            lines.append("<details><summary>Thinking</summary>")
            lines.append("")
            lines.append(msg.thinking)
            lines.append("")
            lines.append("</details>")
            lines.append("")
        lines.append(msg.content)
        if msg.files:
            lines.append("")
            lines.extend(f"- Attachment: {f.name} ({f.mime_type})" for f in msg.files)
        if msg.metadata and msg.metadata.tokens:
            lines.append("")
            lines.append(
                f"_{msg.metadata.tokens.total} tokens, "
                f"{format_duration(msg.metadata.duration_ms)}_"
            )
        lines.extend(["", "---", ""])

    return "\n".join(lines)


def conversation_to_json(conversation: Conversation) -> str:
    """Export a conversation in its stored JSON shape."""
    return json.dumps(conversation.to_dict(), indent=2, ensure_ascii=False)
