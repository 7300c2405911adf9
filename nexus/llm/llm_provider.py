"""Upstream LLM provider for the gateway proxy, using the Anthropic API."""

import json
import time
from typing import Any, AsyncIterator, Protocol

import anthropic

from ..config import DEFAULT_MODEL, get_api_key
from ..errors import (
    AuthError,
    GatewayError,
    NetworkError,
    RateLimitError,
    UnknownGatewayError,
)
from ..logging_config import get_logger
from ..models import Message
from ..streaming import METADATA_MARKER, THINKING_MARKER

logger = get_logger(__name__)

CHAT_MAX_TOKENS = 4096
THINKING_BUDGET_TOKENS = 2048
MISSING_KEY_MESSAGE = "API key not configured. Please set your Anthropic API key."


class ILLMProvider(Protocol):
    """Abstraction for upstream LLM access."""

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        """Generate a whole completion."""
        ...

    async def open_chat_stream(
        self,
        messages: list[Message],
        model: str | None = None,
        thinking: bool = False,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Start a chat completion; returns the marker-framed body chunks."""
        ...

    async def open_text_stream(
        self,
        messages: list[Message],
        max_tokens: int = 1024,
        temperature: float | None = None,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """Start a completion; returns plain text chunks."""
        ...

    async def close(self) -> None:
        ...


def to_anthropic_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Convert chat messages, including inline attachments, to Anthropic format."""
    converted = []
    for message in messages:
        if message.role == "assistant" and not message.content:
            continue

        if not message.files:
            converted.append({"role": message.role, "content": message.content})
            continue

        blocks: list[dict[str, Any]] = []
        if message.content:
            blocks.append({"type": "text", "text": message.content})
        for attachment in message.files:
            source = {
                "type": "base64",
                "media_type": attachment.mime_type,
                "data": attachment.data,
            }
            if attachment.is_image:
                blocks.append({"type": "image", "source": source})
            elif attachment.mime_type == "application/pdf":
                blocks.append({"type": "document", "source": source})
        converted.append({"role": message.role, "content": blocks})

    return converted


def translate_error(error: Exception) -> GatewayError:
    """Map Anthropic SDK exceptions onto the gateway error contract."""
    if isinstance(error, GatewayError):
        return error
    if isinstance(error, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return AuthError("Invalid API key", requires_setup=True)
    if isinstance(error, anthropic.RateLimitError):
        return RateLimitError("Rate limit exceeded. Please try again later.")
    if isinstance(error, anthropic.APIConnectionError):
        return NetworkError("Unable to reach the model provider")
    if isinstance(error, anthropic.BadRequestError):
        return UnknownGatewayError(error.message, status_code=400)
    if isinstance(error, anthropic.APIStatusError):
        return UnknownGatewayError(error.message)
    return UnknownGatewayError(str(error) or "An error occurred while processing your request")


class LLMProvider:
    """Anthropic Claude API provider."""

    def __init__(self, api_key: str | None = None, model: str = DEFAULT_MODEL):
        self._api_key = api_key
        self._model = model
        self._client: anthropic.AsyncAnthropic | None = None
        self._client_key: str | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Client for the current key; rebuilt when the key changes."""
        key = self._api_key or get_api_key()
        if not key:
            raise AuthError(MISSING_KEY_MESSAGE, requires_setup=True)

        if self._client is None or key != self._client_key:
            self._client = anthropic.AsyncAnthropic(api_key=key)
            self._client_key = key
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float | None = None,
        model: str | None = None,
    ) -> str:
        """Generate completion using Claude API."""
        client = self._get_client()

        params: dict[str, Any] = {
            "model": model or self._model,
            "messages": to_anthropic_messages(messages),
            "max_tokens": max_tokens,
        }
        if system:
            params["system"] = system
        if temperature is not None:
            params["temperature"] = temperature

        try:
            response = await client.messages.create(**params)
        except anthropic.APIError as e:
            logger.error(f"LLM API error: {e}")
            raise translate_error(e) from e

        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    async def open_chat_stream(
        self,
        messages: list[Message],
        model: str | None = None,
        thinking: bool = False,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """
        Start a chat completion and return the framed body.

        Upstream errors raised while opening the request propagate as
        GatewayError so the route can still answer with a status code.
        """
        client = self._get_client()
        model = model or self._model

        params: dict[str, Any] = {
            "model": model,
            "messages": to_anthropic_messages(messages),
            "max_tokens": max_tokens or CHAT_MAX_TOKENS,
            "stream": True,
        }
        if thinking:
            params["thinking"] = {"type": "enabled", "budget_tokens": THINKING_BUDGET_TOKENS}
            params["max_tokens"] = max(params["max_tokens"], THINKING_BUDGET_TOKENS + 1024)
        elif temperature is not None:
            # Extended thinking does not accept a custom temperature
            params["temperature"] = temperature

        started = time.monotonic()
        try:
            stream = await client.messages.create(**params)
        except anthropic.APIError as e:
            logger.error(f"LLM API error: {e}")
            raise translate_error(e) from e

        return self._frame_chat(stream, model, started)

    async def _frame_chat(self, stream, model: str, started: float) -> AsyncIterator[str]:
        """
        Re-emit upstream events as the marker-framed text body.

        Answer text is forwarded bare as it arrives. Each reasoning delta is
        forwarded as it arrives behind its own THINKING marker, in the same
        write. The body ends with the METADATA marker and its JSON. An
        upstream error mid-stream is raised so the response is aborted
        instead of ending cleanly.
        """
        input_tokens = 0
        output_tokens = 0

        try:
            async for event in stream:
                if event.type == "message_start":
                    input_tokens = event.message.usage.input_tokens or 0
                elif event.type == "content_block_delta":
                    if event.delta.type == "text_delta" and event.delta.text:
                        yield event.delta.text
                    elif event.delta.type == "thinking_delta" and event.delta.thinking:
                        yield THINKING_MARKER + event.delta.thinking
                elif event.type == "message_delta":
                    output_tokens = event.usage.output_tokens or 0
        except anthropic.APIError as e:
            logger.error(f"Error streaming response: {e}")
            raise translate_error(e) from e
        finally:
            await stream.close()

        metadata = {
            "model": model,
            "tokens": {
                "input": input_tokens,
                "output": output_tokens,
                "total": input_tokens + output_tokens,
            },
            "duration": int((time.monotonic() - started) * 1000),
            "timestamp": int(time.time() * 1000),
        }
        yield METADATA_MARKER + json.dumps(metadata)

    async def open_text_stream(
        self,
        messages: list[Message],
        max_tokens: int = 1024,
        temperature: float | None = None,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """Start a completion; returns plain text chunks."""
        client = self._get_client()

        params: dict[str, Any] = {
            "model": model or self._model,
            "messages": to_anthropic_messages(messages),
            "max_tokens": max_tokens,
            "stream": True,
        }
        if temperature is not None:
            params["temperature"] = temperature

        try:
            stream = await client.messages.create(**params)
        except anthropic.APIError as e:
            logger.error(f"LLM API error: {e}")
            raise translate_error(e) from e

        return self._plain_text(stream)

    async def _plain_text(self, stream) -> AsyncIterator[str]:
        try:
            async for event in stream:
                if (
                    event.type == "content_block_delta"
                    and event.delta.type == "text_delta"
                    and event.delta.text
                ):
                    yield event.delta.text
        except anthropic.APIError as e:
            logger.error(f"Error streaming text: {e}")
        finally:
            await stream.close()
