"""Test doubles for the reasoning model, knowledge store, boundary and audit sink."""

from __future__ import annotations

from typing import Any

from packages.audit import AuditEntry
from packages.core.boundary import ExecutionBoundaryClient
from packages.core.llm import ChatMessage, ChatResponse, ReasoningModel, ToolCall, ToolDefinition
from packages.core.schemas.models import DispatchResult, SearchResult, TokenUsage


class FakeModel(ReasoningModel):
    """Returns scripted responses in order, then a plain text reply."""

    def __init__(self, responses: list[ChatResponse | Exception] | None = None):
        super().__init__(model="fake-model")
        self.responses = list(responses or [])
        self.calls: list[tuple[list[ChatMessage], list[ToolDefinition] | None]] = []

    async def chat(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> ChatResponse:
        self.calls.append((list(messages), tools))
        if not self.responses:
            return ChatResponse(content="Done.", usage=TokenUsage(prompt=5, completion=2))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeKnowledge:
    """Knowledge store returning fixed results, optionally failing."""

    def __init__(self, results: list[SearchResult] | None = None, error: Exception | None = None):
        self.results = results or []
        self.error = error
        self.queries: list[tuple[str, int, str | None]] = []

    def search(self, query: str, limit: int = 5, source: str | None = None) -> list[SearchResult]:
        self.queries.append((query, limit, source))
        if self.error is not None:
            raise self.error
        matches = [r for r in self.results if source is None or r.source == source]
        return matches[:limit]


class RecordingBoundary(ExecutionBoundaryClient):
    """Records dispatched actions and answers with a fixed result."""

    def __init__(self, result: DispatchResult | None = None):
        self.result = result or DispatchResult(success=True, data={"ok": True})
        self.dispatched: list[tuple[str, dict[str, Any]]] = []
        self.closed = False

    async def dispatch(self, action_type: str, payload: dict[str, Any]) -> DispatchResult:
        self.dispatched.append((action_type, payload))
        return self.result

    async def close(self) -> None:
        self.closed = True


class MemoryAuditSink:
    def __init__(self):
        self.entries: list[AuditEntry] = []

    async def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)


def tool_response(*calls: tuple[str, dict[str, Any] | str], content: str = "On it.") -> ChatResponse:
    """A model reply carrying the given (name, arguments) tool calls."""
    return ChatResponse(
        content=content,
        tool_calls=[ToolCall(id=f"call_{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)],
        usage=TokenUsage(prompt=10, completion=5),
    )

