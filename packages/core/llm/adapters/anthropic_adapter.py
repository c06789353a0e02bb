"""Anthropic Claude reasoning-model adapter."""

from __future__ import annotations

import time
from typing import Any

from anthropic import AsyncAnthropic

from packages.core.errors import ReasoningModelError
from packages.core.llm.adapters.base import ReasoningModel
from packages.core.llm.types import ChatMessage, ChatResponse, ToolCall, ToolDefinition
from packages.core.schemas.models import TokenUsage


class AnthropicReasoningModel(ReasoningModel):
    """Tool-calling adapter over the Anthropic Messages API."""

    provider = "anthropic"

    def __init__(
        self,
        model: str = "claude-sonnet-4-5",
        api_key: str | None = None,
        client: AsyncAnthropic | None = None,
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        if client is None and not api_key:
            raise ValueError("Anthropic API key required")
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> AsyncAnthropic:
        """Get or create the Anthropic client."""
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self._api_key)
        return self._client

    @staticmethod
    def build_params(
        model: str,
        max_tokens: int,
        temperature: float,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None,
    ) -> dict[str, Any]:
        # Claude takes system text as a separate parameter and rejects empty turns
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": m.role, "content": m.content} for m in messages if m.role != "system" and m.content
            ],
        }
        if system:
            params["system"] = system
        if tools:
            params["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]
        return params

    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> ChatResponse:
        start_time = time.time()
        params = self.build_params(self.model, self.max_tokens, self.temperature, messages, tools)

        try:
            response = await self.client.messages.create(**params)
        except Exception as e:
            latency = (time.time() - start_time) * 1000
            raise ReasoningModelError(f"Anthropic API error after {latency:.0f}ms: {e}") from e

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in response.content or []:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {})))

        usage = response.usage
        return ChatResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            usage=TokenUsage(
                prompt=usage.input_tokens if usage else 0,
                completion=usage.output_tokens if usage else 0,
            ),
            model=self.model,
            finish_reason=response.stop_reason or "end_turn",
        )
