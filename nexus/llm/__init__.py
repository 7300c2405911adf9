"""LLM module."""

from .llm_provider import ILLMProvider, LLMProvider, to_anthropic_messages, translate_error

__all__ = ["ILLMProvider", "LLMProvider", "to_anthropic_messages", "translate_error"]
