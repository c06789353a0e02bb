"""Reasoning-model layer.

Provider-neutral chat/tool-calling interface used by the orchestrator, with
adapters for Anthropic and OpenAI.
"""

from packages.core.llm.adapters import (
    AnthropicReasoningModel,
    OpenAIReasoningModel,
    ReasoningModel,
    create_reasoning_model,
)
from packages.core.llm.types import (
    ChatMessage,
    ChatResponse,
    ToolCall,
    ToolDefinition,
)

__all__ = [
    # Types
    "ChatMessage",
    "ChatResponse",
    "ToolCall",
    "ToolDefinition",
    # Adapters
    "AnthropicReasoningModel",
    "OpenAIReasoningModel",
    "ReasoningModel",
    "create_reasoning_model",
]
