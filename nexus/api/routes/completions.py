"""Completion gateway routes."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from ...categorization.matching import normalize_match, parse_description, parse_match
from ...config import HELPER_MODEL
from ...errors import ParseError, ValidationError
from ...llm import ILLMProvider
from ...llm.prompts import description_prompt, match_prompt, title_prompt
from ...logging_config import get_logger
from ...models import Attachment, Message

logger = get_logger(__name__)

TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"


class AttachmentPayload(BaseModel):
    """Inline attachment as sent by the client."""

    name: str
    type: str
    size: int
    data: str


class MessagePayload(BaseModel):
    """Chat message as sent by the client. Metadata is accepted and ignored."""

    role: Literal["user", "assistant"]
    content: str = ""
    thinking: str | None = None
    files: list[AttachmentPayload] | None = None

    def to_message(self) -> Message:
        files = None
        if self.files:
            files = [
                Attachment(name=f.name, mime_type=f.type, size_bytes=f.size, data=f.data)
                for f in self.files
            ]
        return Message(role=self.role, content=self.content, thinking=self.thinking, files=files)


class MessagesRequest(BaseModel):
    """Request body carrying a conversation."""

    messages: list[MessagePayload] = Field(default_factory=list)

    def to_messages(self) -> list[Message]:
        if not self.messages:
            raise ValidationError("Messages array is required")
        return [m.to_message() for m in self.messages]


class ChatRequest(MessagesRequest):
    """Request body for a chat turn."""

    model_config = ConfigDict(populate_by_name=True)

    model: str | None = None
    thinking: bool = False
    max_tokens: int | None = Field(default=None, alias="maxTokens")
    temperature: float | None = None


class ProjectPayload(BaseModel):
    id: str
    name: str
    description: str = ""


class MatchRequest(BaseModel):
    """Request body for project matching."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_description: str = Field(default="", alias="conversationDescription")
    projects: list[ProjectPayload] = Field(default_factory=list)


class DescriptionResponse(BaseModel):
    description: str


class MatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    matched_project_id: str | None = Field(default=None, alias="matchedProjectId")
    confidence: float = 0.0


class CompleteResponse(BaseModel):
    content: str


def create_completions_router(provider: ILLMProvider) -> APIRouter:
    """Create completions router."""
    router = APIRouter(prefix="/api", tags=["completions"])

    @router.post("/chat")
    async def chat(request: ChatRequest) -> StreamingResponse:
        """Stream a chat turn as marker-framed plain text."""
        messages = request.to_messages()
        logger.info(
            f"Chat request: {len(messages)} messages, model={request.model}, "
            f"thinking={request.thinking}"
        )
        # Opened before the response starts so upstream errors keep their status code
        body = await provider.open_chat_stream(
            messages,
            model=request.model,
            thinking=request.thinking,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
        )
        return StreamingResponse(body, media_type=TEXT_MEDIA_TYPE)

    @router.post("/complete", response_model=CompleteResponse)
    async def complete(request: ChatRequest) -> dict:
        """Non-streamed completion."""
        content = await provider.complete(
            request.to_messages(),
            model=request.model,
            max_tokens=request.max_tokens or 1024,
            temperature=request.temperature,
        )
        return {"content": content}

    @router.post("/generate-title")
    async def generate_title(request: MessagesRequest) -> StreamingResponse:
        """Stream a short title for the conversation."""
        prompt = title_prompt(request.to_messages())
        body = await provider.open_text_stream(
            [Message(role="user", content=prompt)],
            max_tokens=50,
            temperature=0.7,
            model=HELPER_MODEL,
        )
        return StreamingResponse(body, media_type=TEXT_MEDIA_TYPE)

    @router.post("/generate-description", response_model=DescriptionResponse)
    async def generate_description(request: MessagesRequest) -> dict:
        """One-sentence summary of what the user is trying to do."""
        prompt = description_prompt(request.to_messages())
        content = await provider.complete(
            [Message(role="user", content=prompt)],
            max_tokens=100,
            temperature=0.5,
            model=HELPER_MODEL,
        )
        return {"description": parse_description(content)}

    @router.post("/match-project", response_model=MatchResponse, response_model_by_alias=True)
    async def match_project(request: MatchRequest) -> dict:
        """Score a conversation description against the given projects."""
        if not request.projects:
            return {"matchedProjectId": None, "confidence": 0.0}

        prompt = match_prompt(
            request.conversation_description,
            [p.model_dump() for p in request.projects],
        )
        content = await provider.complete(
            [Message(role="user", content=prompt)],
            max_tokens=150,
            temperature=0.3,
            model=HELPER_MODEL,
        )

        try:
            parsed = parse_match(content)
        except ParseError as e:
            logger.error(f"Error matching project: {e}")
            return {"matchedProjectId": None, "confidence": 0.0}

        result = normalize_match(
            parsed.get("matchedProjectId"),
            parsed.get("confidence"),
            [p.id for p in request.projects],
        )
        return result.to_dict()

    return router
