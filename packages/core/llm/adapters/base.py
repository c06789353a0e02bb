"""Base reasoning-model interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from packages.core.llm.types import ChatMessage, ChatResponse, ToolDefinition


class ReasoningModel(ABC):
    """Base class for tool-calling chat models.

    Adapters translate the provider-neutral message and tool types into
    the provider's request format and normalise the reply.
    """

    provider: str = "base"

    def __init__(self, model: str, max_tokens: int = 1024, temperature: float = 0.7, **kwargs: Any):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._config = kwargs

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> ChatResponse:
        """Run one chat turn.

        Args:
            messages: Conversation so far, system messages included
            tools: Tools the model may call; None or empty disables tool use

        Returns:
            ChatResponse with text content and tool calls

        Raises:
            ReasoningModelError: If the provider call fails
        """
        pass

    def get_model_id(self) -> str:
        return f"{self.provider}/{self.model}"
