"""Core types for the reasoning-model layer."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, Field

from packages.core.schemas.models import TokenUsage


class ChatMessage(BaseModel):
    """One message in a model conversation."""

    role: Literal["system", "user", "assistant"]
    content: str


class ToolDefinition(BaseModel):
    """A tool offered to the model, described by a JSON schema."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolCall(BaseModel):
    """A tool invocation emitted by the model.

    ``arguments`` is whatever the provider returned: a dict for Anthropic
    tool-use blocks, a JSON string for OpenAI function calls.
    """

    id: str = ""
    name: str
    arguments: dict[str, Any] | str = Field(default_factory=dict)

    def parsed_arguments(self) -> dict[str, Any]:
        """Arguments as a dict.

        Raises:
            ValueError: If the arguments are not a JSON object.
        """
        if isinstance(self.arguments, dict):
            return self.arguments
        text = self.arguments.strip()
        if not text:
            return {}
        parsed = json.loads(text)
        if not isinstance(parsed, dict):
            raise ValueError(f"Tool arguments for {self.name} must be a JSON object")
        return parsed


class ChatResponse(BaseModel):
    """Model reply: text plus any tool calls."""

    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    model: str = ""
    finish_reason: str = ""
