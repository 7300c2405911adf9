"""Completion gateway client module."""

from .client import CompletionOptions, GatewayClient, IGatewayClient, RawMatch

__all__ = ["CompletionOptions", "GatewayClient", "IGatewayClient", "RawMatch"]
