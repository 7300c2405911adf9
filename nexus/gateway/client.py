"""HTTP client for the completion gateway."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol

import httpx

from ..cancellation import CancellationToken
from ..config import DEFAULT_MODEL, get_gateway_url
from ..errors import (
    AuthError,
    GatewayError,
    NetworkError,
    ParseError,
    RateLimitError,
    UnknownGatewayError,
)
from ..logging_config import get_logger
from ..models import Message, Project

logger = get_logger(__name__)


@dataclass
class CompletionOptions:
    """Per-request knobs for complete()."""

    stream: bool = True
    thinking: bool = False
    max_tokens: int | None = None
    temperature: float | None = None


@dataclass
class RawMatch:
    """Match result as returned by the gateway, before client-side checks."""

    matched_project_id: str | None
    confidence: Any


class IGatewayClient(Protocol):
    """Access to the completion gateway."""

    def open_chat_stream(
        self,
        messages: list[Message],
        model: str,
        thinking: bool = False,
        token: CancellationToken | None = None,
    ):
        """Async context manager yielding an async iterator of text chunks."""
        ...

    async def generate_title(self, messages: list[Message]) -> str:
        """Generate a short title; the streamed body is buffered whole."""
        ...

    async def generate_description(self, messages: list[Message]) -> str:
        """Generate a one-sentence description."""
        ...

    async def match_project(self, description: str, projects: list[Project]) -> RawMatch:
        """Ask the gateway which project a description belongs to."""
        ...

    async def close(self) -> None:
        ...


def _messages_payload(messages: list[Message]) -> list[dict]:
    return [m.to_dict() for m in messages]


class GatewayClient:
    """httpx-based client for the gateway endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ):
        self._base_url = (base_url or get_gateway_url()).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # Streaming chat turn
    @asynccontextmanager
    async def open_chat_stream(
        self,
        messages: list[Message],
        model: str = DEFAULT_MODEL,
        thinking: bool = False,
        token: CancellationToken | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[AsyncIterator[str]]:
        """
        Open a streamed chat completion.

        The context is entered once the gateway has accepted the request
        (non-2xx responses raise a GatewayError instead). Leaving the context
        closes the connection, which aborts the upstream request.
        """
        payload: dict[str, Any] = {
            "messages": _messages_payload(messages),
            "model": model,
            "thinking": thinking,
        }
        if max_tokens is not None:
            payload["maxTokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature

        if token is not None:
            token.raise_if_cancelled()

        try:
            async with self._client.stream("POST", self._url("/api/chat"), json=payload) as response:
                await self._raise_for_status(response)
                yield self._iter_text(response, token)
        except httpx.TransportError as e:
            raise NetworkError(f"Unable to reach the gateway: {e}") from e

    async def _iter_text(
        self, response: httpx.Response, token: CancellationToken | None
    ) -> AsyncIterator[str]:
        try:
            async for chunk in response.aiter_text():
                if token is not None and token.cancelled:
                    break
                if chunk:
                    yield chunk
        except httpx.TransportError as e:
            raise NetworkError(f"Connection to the gateway was interrupted: {e}") from e

    # Generic contract
    async def complete(
        self,
        messages: list[Message],
        model: str = DEFAULT_MODEL,
        options: CompletionOptions | None = None,
        token: CancellationToken | None = None,
    ):
        """
        Run a completion.

        With options.stream (the default) this returns the async context
        manager of open_chat_stream(); otherwise it awaits and returns the
        whole completion text.
        """
        options = options or CompletionOptions()
        if options.stream:
            return self.open_chat_stream(
                messages,
                model=model,
                thinking=options.thinking,
                token=token,
                max_tokens=options.max_tokens,
                temperature=options.temperature,
            )

        payload: dict[str, Any] = {"messages": _messages_payload(messages), "model": model}
        if options.max_tokens is not None:
            payload["maxTokens"] = options.max_tokens
        if options.temperature is not None:
            payload["temperature"] = options.temperature

        body = await self._post_json("/api/complete", payload)
        content = body.get("content")
        if not isinstance(content, str):
            raise ParseError("Completion response has no content")
        return content

    # Background helpers
    async def generate_title(self, messages: list[Message]) -> str:
        """Generate a short title; the streamed body is buffered whole."""
        parts: list[str] = []
        try:
            async with self._client.stream(
                "POST",
                self._url("/api/generate-title"),
                json={"messages": _messages_payload(messages)},
            ) as response:
                await self._raise_for_status(response)
                async for chunk in response.aiter_text():
                    parts.append(chunk)
        except httpx.TransportError as e:
            raise NetworkError(f"Unable to reach the gateway: {e}") from e

        return "".join(parts).strip()

    async def generate_description(self, messages: list[Message]) -> str:
        """Generate a one-sentence description."""
        body = await self._post_json(
            "/api/generate-description", {"messages": _messages_payload(messages)}
        )
        description = body.get("description")
        if description is not None and not isinstance(description, str):
            raise ParseError("Description is not a string")
        return description or ""

    async def match_project(self, description: str, projects: list[Project]) -> RawMatch:
        """Ask the gateway which project a description belongs to."""
        body = await self._post_json(
            "/api/match-project",
            {
                "conversationDescription": description,
                "projects": [
                    {"id": p.id, "name": p.name, "description": p.description}
                    for p in projects
                ],
            },
        )
        return RawMatch(
            matched_project_id=body.get("matchedProjectId"),
            confidence=body.get("confidence"),
        )

    # Internals
    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def _post_json(self, path: str, payload: dict) -> dict:
        try:
            response = await self._client.post(self._url(path), json=payload)
        except httpx.TransportError as e:
            raise NetworkError(f"Unable to reach the gateway: {e}") from e

        await self._raise_for_status(response)
        try:
            body = response.json()
        except ValueError as e:
            raise ParseError(f"Invalid JSON from {path}: {e}") from e
        if not isinstance(body, dict):
            raise ParseError(f"Unexpected response shape from {path}")
        return body

    @staticmethod
    async def _raise_for_status(response: httpx.Response) -> None:
        """Translate a non-2xx gateway response into a typed GatewayError."""
        if response.is_success:
            return

        await response.aread()
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        status = response.status_code
        message = body.get("error") or f"API error: {status}"

        error: GatewayError
        if status == 401:
            error = AuthError(message, requires_setup=bool(body.get("requiresSetup", True)))
        elif status == 429:
            error = RateLimitError(message)
        elif status == 503:
            error = NetworkError(message)
        else:
            error = UnknownGatewayError(message, status_code=status)

        logger.warning(f"Gateway returned {status}: {message}")
        raise error
