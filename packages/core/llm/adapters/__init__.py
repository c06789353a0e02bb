"""Reasoning-model adapters for different LLM providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from packages.core.llm.adapters.anthropic_adapter import AnthropicReasoningModel
from packages.core.llm.adapters.base import ReasoningModel
from packages.core.llm.adapters.openai_adapter import OpenAIReasoningModel

if TYPE_CHECKING:
    from packages.core.config import AgentSettings


def create_reasoning_model(settings: "AgentSettings") -> ReasoningModel:
    """Build the adapter selected by ``settings.llm_provider``."""
    if settings.llm_provider == "openai":
        return OpenAIReasoningModel(
            model=settings.openai_model,
            api_key=settings.openai_api_key,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
    return AnthropicReasoningModel(
        model=settings.anthropic_model,
        api_key=settings.anthropic_api_key,
        max_tokens=settings.max_tokens,
        temperature=settings.temperature,
    )


__all__ = [
    "AnthropicReasoningModel",
    "OpenAIReasoningModel",
    "ReasoningModel",
    "create_reasoning_model",
]
