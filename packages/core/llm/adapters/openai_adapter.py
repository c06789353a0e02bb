"""OpenAI reasoning-model adapter."""

from __future__ import annotations

import time
from typing import Any

from openai import AsyncOpenAI

from packages.core.errors import ReasoningModelError
from packages.core.llm.adapters.base import ReasoningModel
from packages.core.llm.types import ChatMessage, ChatResponse, ToolCall, ToolDefinition
from packages.core.schemas.models import TokenUsage


class OpenAIReasoningModel(ReasoningModel):
    """Tool-calling adapter over OpenAI chat completions (function calling)."""

    provider = "openai"

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
        **kwargs: Any,
    ):
        super().__init__(model, **kwargs)
        if client is None and not api_key:
            raise ValueError("OpenAI API key required")
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> ChatResponse:
        start_time = time.time()

        params: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if tools:
            params["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in tools
            ]

        try:
            response = await self.client.chat.completions.create(**params)
        except Exception as e:
            latency = (time.time() - start_time) * 1000
            raise ReasoningModelError(f"OpenAI API error after {latency:.0f}ms: {e}") from e

        choice = response.choices[0] if response.choices else None
        message = choice.message if choice else None

        # Arguments stay as the raw JSON string; parsing happens per call downstream
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "")
            for tc in ((message.tool_calls or []) if message else [])
        ]

        usage = response.usage
        return ChatResponse(
            content=(message.content or "") if message else "",
            tool_calls=tool_calls,
            usage=TokenUsage(
                prompt=usage.prompt_tokens if usage else 0,
                completion=usage.completion_tokens if usage else 0,
            ),
            model=self.model,
            finish_reason=(choice.finish_reason or "stop") if choice else "",
        )
