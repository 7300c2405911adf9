"""Prompt templates for the helper endpoints."""

from ..models import Message


def _transcript(messages: list[Message]) -> str:
    return "\n".join(f"{m.role}: {m.content}" for m in messages)


def title_prompt(messages: list[Message]) -> str:
    return (
        "Based on this conversation, generate a short, concise title (3-6 words) "
        "that captures the main topic. Only return the title text, nothing else.\n\n"
        f"Conversation:\n{_transcript(messages)}"
    )


def description_prompt(messages: list[Message]) -> str:
    return (
        "Analyze this conversation and generate a single, concise sentence (8-12 words) "
        "describing what the user is trying to accomplish or discuss. "
        "Be specific and actionable.\n\n"
        "Return ONLY a JSON object in this exact format:\n"
        '{\n  "description": "your description here"\n}\n\n'
        f"Conversation:\n{_transcript(messages)}"
    )


MATCH_RUBRIC = """Scoring Rubric (0.0-1.0 in 0.1 increments):
- 0.9-1.0: Direct topic match, same tools/technologies, same problem domain
- 0.7-0.8: Related topic, overlapping domain, similar context
- 0.5-0.6: Tangentially related, some keyword overlap
- 0.3-0.4: Weak connection, different domain but related field
- 0.0-0.2: No meaningful connection, different topics"""


def match_prompt(description: str, projects: list[dict]) -> str:
    """projects: [{"id", "name", "description"}]"""
    projects_list = "\n".join(
        f"- ID: {p['id']}, Name: {p['name']}, Description: {p['description']}"
        for p in projects
    )
    return f"""You are matching a conversation to projects based on semantic similarity.

Conversation description: "{description}"

Available projects:
{projects_list}

Task: Determine if this conversation belongs to any existing project.

{MATCH_RUBRIC}

Rules:
- Return matchedProjectId ONLY if confidence >= 0.7
- Return null if no project scores >= 0.7
- Be conservative - only match if truly relevant
- If multiple projects score >= 0.7, choose the highest scoring one

Return ONLY valid JSON in this exact format:
{{
  "matchedProjectId": "project-id-here-or-null",
  "confidence": 0.8
}}

No additional text or explanation."""
