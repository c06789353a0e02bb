"""Orchestrator.

Turns a user message into a model call, routes every tool call the model
emits through validation and the autonomy policy, and then either answers
it locally, dispatches it across the execution boundary, or queues it for
the user's approval.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any

from pydantic import ValidationError

from packages.audit import AuditEntry, AuditEventType, AuditSink, get_default_time_saved
from packages.core.autonomy import AutonomyPolicy
from packages.core.boundary import ExecutionBoundaryClient, payload_digest
from packages.core.config import AgentSettings
from packages.core.confirmation import DenyReconfirmation, ReconfirmationCheck
from packages.core.errors import (
    AuthorizationRequiredError,
    PendingActionNotFoundError,
    ReasoningModelError,
)
from packages.core.escalation import EscalationEngine
from packages.core.hitl import PendingActionQueue
from packages.core.knowledge import KnowledgeStore
from packages.core.llm import ChatMessage, ReasoningModel, ToolCall
from packages.core.orchestrator.conversations import ConversationStore
from packages.core.orchestrator.tools import ExtensionTool, ToolRegistry, ToolSpec
from packages.core.persistence import Database
from packages.core.schemas.models import (
    ActionStatus,
    AgentAction,
    ApprovalOutcome,
    ApprovalPattern,
    ConversationTurn,
    Decision,
    DispatchResult,
    OrchestratorResponse,
    PendingAction,
    PendingActionStatus,
    SearchResult,
    TokenUsage,
    ToolCallError,
    utcnow,
)
from packages.core.trust import ApprovalTracker

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are {name}, the user's personal AI. You run on their device and their data stays there.

You can search their local files, documents, emails and calendar through tools, and take actions on their behalf. Whether an action runs immediately or waits for the user's approval is decided by their autonomy settings, not by you.

Core principles:
- Be helpful, warm, proactive and concise
- Search the user's knowledge base and indexed emails before asking them for information
- When taking actions, explain what you plan to do and why
- Be transparent about what data you access and what actions you take

Always use tools when the request involves the user's data or external actions. Respond conversationally when the user just wants to chat."""

QUEUED_ACK = "queued for approval"


class Orchestrator:
    """Processes user messages and manages the approval queue."""

    def __init__(
        self,
        model: ReasoningModel,
        knowledge: KnowledgeStore,
        boundary: ExecutionBoundaryClient,
        policy: AutonomyPolicy,
        tracker: ApprovalTracker,
        database: Database,
        *,
        escalation: EscalationEngine | None = None,
        audit: AuditSink | None = None,
        reconfirmation: ReconfirmationCheck | None = None,
        settings: AgentSettings | None = None,
    ):
        self.model = model
        self.knowledge = knowledge
        self.boundary = boundary
        self.policy = policy
        self.tracker = tracker
        self.escalation = escalation
        self.audit = audit
        self.reconfirmation = reconfirmation or DenyReconfirmation()
        self.settings = settings or AgentSettings()

        self.queue = PendingActionQueue(database)
        self.conversations = ConversationStore(database)
        self.tools = ToolRegistry()

    # =========================================================================
    # Message processing
    # =========================================================================

    async def process_message(self, text: str, conversation_id: str | None = None) -> OrchestratorResponse:
        """Run one conversational turn.

        Tool-call failures never abort the turn; they are reported in
        ``errors`` and the remaining calls still run.

        Raises:
            ReasoningModelError: If the first model call fails.
        """
        conversation_id = self.conversations.ensure(conversation_id)
        context = await self._retrieve_context(text)
        history = self.conversations.get_turns(conversation_id, limit=self.settings.history_turns)
        messages = self._build_messages(text, context, history)

        response = await self.model.chat(messages, tools=self.tools.definitions())
        usage = TokenUsage(prompt=response.usage.prompt, completion=response.usage.completion)
        final_message = response.content

        actions: list[AgentAction] = []
        errors: list[ToolCallError] = []
        tool_results: list[tuple[str, Any]] = []

        for call in response.tool_calls:
            try:
                await self._handle_tool_call(call, actions, tool_results, errors)
            except Exception as e:
                logger.exception("Tool call %s failed", call.name)
                errors.append(ToolCallError(tool=call.name, kind="execution_error", message=str(e)))

        if tool_results:
            follow_up = list(messages)
            # A reply made only of tool calls has no text to carry over
            if response.content:
                follow_up.append(ChatMessage(role="assistant", content=response.content))
            follow_up.append(ChatMessage(role="user", content=self._format_tool_results(tool_results)))
            try:
                composed = await self.model.chat(follow_up)
                final_message = composed.content
                usage.prompt += composed.usage.prompt
                usage.completion += composed.usage.completion
            except ReasoningModelError as e:
                logger.warning("Follow-up model call failed, keeping first reply: %s", e)

        pending_count = sum(1 for a in actions if a.status == ActionStatus.PENDING_APPROVAL)
        if pending_count:
            final_message += f"\n\n[{pending_count} action(s) awaiting your approval]"

        self.conversations.add_turn(conversation_id, "user", text)
        if final_message:
            self.conversations.add_turn(conversation_id, "assistant", final_message, actions=actions, usage=usage)

        return OrchestratorResponse(
            message=final_message,
            conversation_id=conversation_id,
            actions=actions,
            errors=errors,
            context=context,
            tokens_used=usage,
        )

    async def _handle_tool_call(
        self,
        call: ToolCall,
        actions: list[AgentAction],
        tool_results: list[tuple[str, Any]],
        errors: list[ToolCallError],
    ) -> None:
        spec = self.tools.get(call.name)
        if spec is None:
            logger.warning("Model requested unknown tool %s", call.name)
            errors.append(ToolCallError(tool=call.name, kind="unknown_tool", message=f"Unknown tool: {call.name}"))
            return

        try:
            payload = spec.validate_args(call.parsed_arguments())
        except (ValidationError, ValueError) as e:
            logger.warning("Invalid arguments for %s: %s", call.name, e)
            errors.append(ToolCallError(tool=call.name, kind="parse_error", message=str(e)))
            return

        handler = self.tools.handler(call.name)
        if handler is not None:
            try:
                tool_results.append((call.name, await handler(payload)))
            except Exception as e:
                logger.warning("Extension tool %s failed: %s", call.name, e)
                tool_results.append((call.name, {"error": str(e)}))
                errors.append(ToolCallError(tool=call.name, kind="execution_error", message=str(e)))
            return

        if spec.local:
            tool_results.append((call.name, await self._run_local_tool(call.name, payload)))
            return

        if spec.action_type is None:
            errors.append(ToolCallError(tool=call.name, kind="unknown_tool", message=f"Tool {call.name} has no action"))
            return

        action, result = await self._route_action(spec, payload)
        actions.append(action)
        tool_results.append((call.name, result))

    async def _route_action(self, spec: ToolSpec, payload: dict[str, Any]) -> tuple[AgentAction, Any]:
        """Apply the policy to one boundary-crossing action."""
        action_type = spec.action_type or ""
        evaluation = self.policy.evaluate(action_type)
        action = AgentAction(
            tool=spec.name,
            action_type=action_type,
            payload=payload,
            domain=evaluation.domain,
            tier=evaluation.tier,
            risk=evaluation.risk,
            decision=evaluation.decision,
            status=ActionStatus.PENDING_APPROVAL,
            reasoning=f"Model requested {spec.name} based on conversation context",
        )

        # Sensitive actions are confirmed before they may be queued or dispatched
        if self.policy.is_sensitive(action_type) and not await self._confirm(action_type, payload):
            action.status = ActionStatus.AUTHORIZATION_REQUIRED
            action.result = DispatchResult.failure(
                "AUTHORIZATION_REQUIRED", f"Re-confirmation required before {action_type}"
            )
            await self._audit(AuditEventType.AUTHORIZATION_REQUIRED, action)
            return action, {"error": action.result.error.message}

        if evaluation.decision == Decision.REQUIRES_APPROVAL:
            pending = self.queue.enqueue(
                PendingAction(
                    id=action.id,
                    action_type=action_type,
                    payload=payload,
                    domain=action.domain,
                    tier=action.tier,
                    reasoning=action.reasoning,
                    created_at=action.created_at,
                )
            )
            await self._audit(AuditEventType.ACTION_QUEUED, action)
            return action, {"status": QUEUED_ACK, "action_id": pending.id}

        result = await self._dispatch(action_type, payload)
        action.result = result
        action.executed_at = utcnow()
        if result.success:
            action.status = ActionStatus.EXECUTED
            await self._audit(AuditEventType.ACTION_EXECUTED, action)
            return action, result.data

        action.status = ActionStatus.FAILED
        await self._audit(AuditEventType.ACTION_FAILED, action)
        return action, {"error": result.error.message if result.error else "Action failed"}

    async def _run_local_tool(self, name: str, payload: dict[str, Any]) -> Any:
        if name == "search_files":
            results = await self._search(payload["query"], limit=5)
            return [{"title": r.title, "content": r.content[:500], "score": r.score} for r in results]

        if name == "search_emails":
            query = " ".join(filter(None, [payload["query"], payload.get("sender")]))
            results = await self._search(query, limit=10, source="email")
            return [
                {"title": r.title, "content": r.content[:300], "score": r.score, "metadata": r.metadata}
                for r in results
            ]

        if name == "categorize_email":
            # Informational only; nothing leaves the core
            return {
                "message_id": payload["message_id"],
                "categories": payload["categories"],
                "priority": payload["priority"],
            }

        if name == "detect_calendar_conflicts":
            conflicts = await self._search(
                f"calendar event {payload['start_time']} {payload['end_time']}",
                limit=10,
                source="calendar",
            )
            return {
                "conflicts": [{"title": c.title, "metadata": c.metadata} for c in conflicts],
                "has_conflicts": bool(conflicts),
            }

        if name == "search_cloud_files":
            results = await self._search(payload["query"], limit=10, source="cloud_storage")
            provider = payload.get("provider")
            if provider:
                results = [r for r in results if r.metadata.get("provider") == provider]
            return [
                {"title": r.title, "content": r.content[:500], "score": r.score, "metadata": r.metadata}
                for r in results
            ]

        raise ValueError(f"No local handler for tool {name}")

    # =========================================================================
    # Approval queue
    # =========================================================================

    def get_pending_actions(self) -> list[PendingAction]:
        return self.queue.list_pending()

    async def approve_action(self, action_id: str) -> ApprovalOutcome:
        """Dispatch a queued action exactly once.

        Raises:
            PendingActionNotFoundError: Unknown id or no longer pending.
            AuthorizationRequiredError: Sensitive action not re-confirmed;
                the action stays pending.
        """
        pending = self.queue.get(action_id)
        if pending is None or pending.status != PendingActionStatus.PENDING_APPROVAL:
            raise PendingActionNotFoundError(action_id)

        if self.policy.is_sensitive(pending.action_type):
            if not await self._confirm(pending.action_type, pending.payload):
                await self._audit_pending(AuditEventType.AUTHORIZATION_REQUIRED, pending, "authorization_required")
                raise AuthorizationRequiredError(pending.action_type, action_id)

        claimed = self.queue.claim(action_id, PendingActionStatus.APPROVED)
        if claimed is None:
            raise PendingActionNotFoundError(action_id)

        result = await self._dispatch(claimed.action_type, claimed.payload)
        self.queue.record_result(action_id, result)
        claimed.result = result

        self.tracker.record_approval(claimed.action_type, claimed.payload)
        await self._audit_pending(
            AuditEventType.ACTION_APPROVED,
            claimed,
            ActionStatus.EXECUTED.value if result.success else ActionStatus.FAILED.value,
            time_saved=result.success,
        )

        prompt = self.escalation.evaluate(claimed.domain) if self.escalation else None
        return ApprovalOutcome(action=claimed, escalation_prompt=prompt)

    async def reject_action(self, action_id: str) -> PendingAction:
        """Resolve a queued action without dispatching it.

        Raises:
            PendingActionNotFoundError: Unknown id or no longer pending.
        """
        claimed = self.queue.claim(action_id, PendingActionStatus.REJECTED)
        if claimed is None:
            raise PendingActionNotFoundError(action_id)

        self.tracker.record_rejection(claimed.action_type, claimed.payload)
        await self._audit_pending(AuditEventType.ACTION_REJECTED, claimed, PendingActionStatus.REJECTED.value)
        return claimed

    def get_approval_count(self, action_type: str, payload: dict[str, Any] | None = None) -> int:
        return self.tracker.get_approval_count(action_type, payload)

    def get_approval_threshold(self, action_type: str, payload: dict[str, Any] | None = None) -> int:
        return self.tracker.get_approval_threshold(action_type, payload)

    def get_approval_patterns(self) -> list[ApprovalPattern]:
        return self.tracker.get_patterns()

    def get_conversation(self, conversation_id: str) -> list[ConversationTurn]:
        return self.conversations.get_turns(conversation_id)

    def register_tools(self, tools: list[ExtensionTool]) -> None:
        for tool in tools:
            self.tools.register(tool)
            logger.info("Registered extension tool %s", tool.name)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _build_messages(
        self,
        text: str,
        context: list[SearchResult],
        history: list[ConversationTurn],
    ) -> list[ChatMessage]:
        messages = [ChatMessage(role="system", content=SYSTEM_PROMPT.format(name=self.settings.assistant_name))]

        if context:
            lines = [
                f"[{i}] {r.title} ({r.source}): {r.content[:500]}"
                for i, r in enumerate(context, start=1)
            ]
            messages.append(
                ChatMessage(
                    role="system",
                    content="Relevant context from the user's knowledge base:\n" + "\n\n".join(lines),
                )
            )

        for turn in history:
            if turn.role in ("user", "assistant") and turn.content:
                messages.append(ChatMessage(role=turn.role, content=turn.content))

        messages.append(ChatMessage(role="user", content=text))
        return messages

    @staticmethod
    def _format_tool_results(tool_results: list[tuple[str, Any]]) -> str:
        lines = [f"{tool}: {json.dumps(result, default=str)}" for tool, result in tool_results]
        return "Tool results:\n" + "\n".join(lines)

    async def _search(self, query: str, limit: int, source: str | None = None) -> list[SearchResult]:
        results = self.knowledge.search(query, limit=limit, source=source)
        if inspect.isawaitable(results):
            results = await results
        return list(results)

    async def _retrieve_context(self, text: str) -> list[SearchResult]:
        try:
            return await self._search(text, limit=self.settings.context_results)
        except Exception as e:
            logger.warning("Knowledge context unavailable: %s", e)
            return []

    async def _confirm(self, action_type: str, payload: dict[str, Any]) -> bool:
        try:
            return bool(await self.reconfirmation.confirm(action_type, payload))
        except Exception:
            logger.exception("Re-confirmation check failed for %s", action_type)
            return False

    async def _dispatch(self, action_type: str, payload: dict[str, Any]) -> DispatchResult:
        try:
            result = await self.boundary.dispatch(action_type, payload)
        except Exception as e:
            logger.exception("Dispatch of %s raised", action_type)
            return DispatchResult.failure("DISPATCH_ERROR", str(e))
        if not result.success:
            logger.warning(
                "Dispatch of %s failed: %s", action_type, result.error.message if result.error else "unknown"
            )
        return result

    async def _audit(self, event_type: AuditEventType, action: AgentAction) -> None:
        await self._record_audit(
            AuditEntry(
                event_type=event_type,
                action_id=action.id,
                action_type=action.action_type,
                domain=action.domain.value,
                tier=action.tier.value,
                decision=action.decision.value,
                status=action.status.value,
                payload_hash=payload_digest(action.payload),
                estimated_time_saved_seconds=(
                    get_default_time_saved(action.action_type) if action.status == ActionStatus.EXECUTED else 0
                ),
            )
        )

    async def _audit_pending(
        self,
        event_type: AuditEventType,
        pending: PendingAction,
        status: str,
        time_saved: bool = False,
    ) -> None:
        await self._record_audit(
            AuditEntry(
                event_type=event_type,
                action_id=pending.id,
                action_type=pending.action_type,
                domain=pending.domain.value,
                tier=pending.tier.value,
                decision=Decision.REQUIRES_APPROVAL.value,
                status=status,
                payload_hash=payload_digest(pending.payload),
                estimated_time_saved_seconds=get_default_time_saved(pending.action_type) if time_saved else 0,
            )
        )

    async def _record_audit(self, entry: AuditEntry) -> None:
        if self.audit is None:
            return
        try:
            await self.audit.record(entry)
        except Exception:
            logger.exception("Audit record failed for %s", entry.action_type)


__all__ = ["Orchestrator", "SYSTEM_PROMPT"]
