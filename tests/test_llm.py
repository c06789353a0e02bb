"""Tests for the Anthropic and OpenAI reasoning-model adapters."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from fakes import FakeKnowledge, MemoryAuditSink, RecordingBoundary
from packages.core.autonomy import AutonomyPolicy
from packages.core.config import AgentSettings
from packages.core.errors import ReasoningModelError
from packages.core.llm import (
    AnthropicReasoningModel,
    ChatMessage,
    OpenAIReasoningModel,
    ToolDefinition,
    create_reasoning_model,
)
from packages.core.orchestrator import Orchestrator
from packages.core.persistence import Database
from packages.core.trust import ApprovalTracker

ARCHIVE_TOOL = ToolDefinition(
    name="archive_email",
    description="Archive messages",
    parameters={"type": "object", "properties": {"message_ids": {"type": "array"}}},
)


class StubCreate:
    """Async ``create`` that records its kwargs and replays scripted replies."""

    def __init__(self, replies: list[Any], default: Any = None):
        self.replies = list(replies)
        self.default = default
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if not self.replies:
            return self.default
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def anthropic_client(*replies: Any) -> SimpleNamespace:
    return SimpleNamespace(messages=SimpleNamespace(create=StubCreate(list(replies))))


def anthropic_reply(*blocks: SimpleNamespace, stop_reason: str = "end_turn") -> SimpleNamespace:
    return SimpleNamespace(
        content=list(blocks),
        usage=SimpleNamespace(input_tokens=12, output_tokens=7),
        stop_reason=stop_reason,
    )


def openai_client(*replies: Any, default: Any = None) -> SimpleNamespace:
    create = StubCreate(list(replies), default=default)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def openai_reply(content: str | None = None, tool_calls: list[tuple[str, str, str]] | None = None) -> SimpleNamespace:
    calls = [
        SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))
        for call_id, name, arguments in (tool_calls or [])
    ]
    message = SimpleNamespace(content=content, tool_calls=calls or None)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason="tool_calls" if calls else "stop")],
        usage=SimpleNamespace(prompt_tokens=20, completion_tokens=4),
    )


class TestAnthropicAdapter:
    """Tests for request building and response parsing against a stubbed client."""

    def test_build_params(self) -> None:
        messages = [
            ChatMessage(role="system", content="You are Aide."),
            ChatMessage(role="user", content="archive the newsletter"),
            ChatMessage(role="assistant", content=""),
            ChatMessage(role="user", content="Tool results: ok"),
        ]
        params = AnthropicReasoningModel.build_params("claude-test", 512, 0.2, messages, [ARCHIVE_TOOL])

        assert params["system"] == "You are Aide."
        assert params["messages"] == [
            {"role": "user", "content": "archive the newsletter"},
            {"role": "user", "content": "Tool results: ok"},
        ]
        assert params["tools"] == [
            {
                "name": "archive_email",
                "description": "Archive messages",
                "input_schema": ARCHIVE_TOOL.parameters,
            }
        ]
        assert params["max_tokens"] == 512

    def test_build_params_without_system_or_tools(self) -> None:
        params = AnthropicReasoningModel.build_params(
            "claude-test", 512, 0.2, [ChatMessage(role="user", content="hi")], None
        )
        assert "system" not in params
        assert "tools" not in params

    @pytest.mark.asyncio
    async def test_text_and_tool_use_blocks(self) -> None:
        client = anthropic_client(
            anthropic_reply(
                SimpleNamespace(type="text", text="Archiving now."),
                SimpleNamespace(type="tool_use", id="tu_1", name="archive_email", input={"message_ids": ["m1"]}),
                stop_reason="tool_use",
            )
        )
        model = AnthropicReasoningModel(model="claude-test", client=client)

        response = await model.chat([ChatMessage(role="user", content="archive it")], [ARCHIVE_TOOL])

        assert response.content == "Archiving now."
        assert len(response.tool_calls) == 1
        call = response.tool_calls[0]
        assert (call.id, call.name) == ("tu_1", "archive_email")
        assert call.parsed_arguments() == {"message_ids": ["m1"]}
        assert response.usage.prompt == 12
        assert response.usage.completion == 7
        assert response.finish_reason == "tool_use"
        assert client.messages.create.calls[0]["tools"][0]["name"] == "archive_email"

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self) -> None:
        client = anthropic_client(RuntimeError("overloaded"))
        model = AnthropicReasoningModel(model="claude-test", client=client)

        with pytest.raises(ReasoningModelError, match="overloaded"):
            await model.chat([ChatMessage(role="user", content="hi")])

    def test_key_or_client_required(self) -> None:
        with pytest.raises(ValueError):
            AnthropicReasoningModel(api_key="")


class TestOpenAIAdapter:
    """Tests for function-calling replies from a stubbed chat completions client."""

    @pytest.mark.asyncio
    async def test_tool_call_arguments_are_json_strings(self) -> None:
        client = openai_client(
            openai_reply(tool_calls=[("call_1", "archive_email", '{"message_ids": ["m1", "m2"]}')])
        )
        model = OpenAIReasoningModel(model="gpt-test", client=client)

        response = await model.chat([ChatMessage(role="user", content="archive")], [ARCHIVE_TOOL])

        assert response.content == ""
        call = response.tool_calls[0]
        assert call.arguments == '{"message_ids": ["m1", "m2"]}'
        assert call.parsed_arguments() == {"message_ids": ["m1", "m2"]}
        assert response.usage.prompt == 20
        assert response.finish_reason == "tool_calls"

        sent = client.chat.completions.create.calls[0]
        assert sent["tools"][0] == {
            "type": "function",
            "function": {
                "name": "archive_email",
                "description": "Archive messages",
                "parameters": ARCHIVE_TOOL.parameters,
            },
        }

    @pytest.mark.asyncio
    async def test_plain_text_reply(self) -> None:
        client = openai_client(openai_reply(content="Hello there."))
        model = OpenAIReasoningModel(model="gpt-test", client=client)

        response = await model.chat([ChatMessage(role="user", content="hi")])

        assert response.content == "Hello there."
        assert response.tool_calls == []
        assert "tools" not in client.chat.completions.create.calls[0]

    @pytest.mark.asyncio
    async def test_api_error_is_wrapped(self) -> None:
        model = OpenAIReasoningModel(model="gpt-test", client=openai_client(ConnectionError("reset")))

        with pytest.raises(ReasoningModelError):
            await model.chat([ChatMessage(role="user", content="hi")])

    @pytest.mark.asyncio
    async def test_malformed_arguments_become_parse_errors(
        self,
        database: Database,
        policy: AutonomyPolicy,
        tracker: ApprovalTracker,
        knowledge: FakeKnowledge,
        boundary: RecordingBoundary,
        audit: MemoryAuditSink,
    ) -> None:
        """A broken JSON string fails only its own call."""
        client = openai_client(
            openai_reply(
                tool_calls=[
                    ("call_1", "archive_email", '{"message_ids": ['),
                    ("call_2", "archive_email", '["m1"]'),
                    ("call_3", "archive_email", '{"message_ids": ["m9"]}'),
                ]
            ),
            default=openai_reply(content="Archived one message."),
        )
        orchestrator = Orchestrator(
            OpenAIReasoningModel(model="gpt-test", client=client),
            knowledge,
            boundary,
            policy,
            tracker,
            database,
            audit=audit,
            settings=AgentSettings(_env_file=None),
        )

        response = await orchestrator.process_message("archive the newsletters")

        assert [(e.tool, e.kind) for e in response.errors] == [
            ("archive_email", "parse_error"),
            ("archive_email", "parse_error"),
        ]
        assert boundary.dispatched == [("email.archive", {"message_ids": ["m9"]})]
        assert response.message == "Archived one message."


class TestCreateReasoningModel:
    def test_anthropic_is_default(self) -> None:
        model = create_reasoning_model(AgentSettings(_env_file=None, anthropic_api_key="sk-ant-test"))
        assert isinstance(model, AnthropicReasoningModel)
        assert model.model == "claude-sonnet-4-5"

    def test_openai_selected(self) -> None:
        settings = AgentSettings(_env_file=None, llm_provider="openai", openai_api_key="sk-test", openai_model="gpt-x")
        model = create_reasoning_model(settings)
        assert isinstance(model, OpenAIReasoningModel)
        assert model.model == "gpt-x"

    def test_missing_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            create_reasoning_model(AgentSettings(_env_file=None, llm_provider="openai", openai_api_key=""))
