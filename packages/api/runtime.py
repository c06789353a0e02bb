"""Runtime container wiring the core components for the HTTP layer.

The container is built lazily on first use from ``AgentSettings``. Tests
replace it through ``set_runtime`` or FastAPI's ``dependency_overrides``.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from packages.audit import AuditSink, JsonlAuditSink
from packages.core.autonomy import AutonomyPolicy, PolicyStore, ProtectedConfigGuard
from packages.core.boundary import ExecutionBoundaryClient, HttpBoundaryClient
from packages.core.config import AgentSettings
from packages.core.confirmation import ReconfirmationCheck
from packages.core.escalation import EscalationEngine
from packages.core.knowledge import ChromaKnowledgeStore, KnowledgeStore
from packages.core.llm import ReasoningModel, create_reasoning_model
from packages.core.orchestrator import Orchestrator
from packages.core.persistence import Database, create_database
from packages.core.trust import ApprovalTracker

logger = logging.getLogger(__name__)


class AgentRuntime:
    """Holds one instance of every core component."""

    def __init__(
        self,
        settings: AgentSettings,
        database: Database,
        policy: AutonomyPolicy,
        tracker: ApprovalTracker,
        escalation: EscalationEngine,
        orchestrator: Orchestrator,
        boundary: ExecutionBoundaryClient,
    ):
        self.settings = settings
        self.database = database
        self.policy = policy
        self.tracker = tracker
        self.escalation = escalation
        self.orchestrator = orchestrator
        self.boundary = boundary

    @property
    def guard(self) -> ProtectedConfigGuard:
        return self.policy.guard

    async def close(self) -> None:
        await self.boundary.close()
        self.database.dispose()


def build_runtime(
    settings: AgentSettings | None = None,
    *,
    database: Database | None = None,
    model: ReasoningModel | None = None,
    knowledge: KnowledgeStore | None = None,
    boundary: ExecutionBoundaryClient | None = None,
    audit: AuditSink | None = None,
    reconfirmation: ReconfirmationCheck | None = None,
) -> AgentRuntime:
    """Build a runtime, using shipped implementations for anything not given."""
    settings = settings or AgentSettings()

    database = database or create_database(settings.database_url)
    store = PolicyStore(database, settings.default_tier, settings.domain_overrides)
    policy = AutonomyPolicy(store)
    tracker = ApprovalTracker(database, default_threshold=settings.approval_threshold)
    escalation = EscalationEngine(
        database,
        policy,
        tracker,
        threshold=settings.escalation_threshold,
        cooldown=timedelta(days=settings.escalation_cooldown_days),
        prompt_ttl=timedelta(days=settings.escalation_prompt_ttl_days),
        assistant_name=settings.assistant_name,
    )

    boundary = boundary or HttpBoundaryClient(settings.boundary_url, settings.signing_key_bytes)
    orchestrator = Orchestrator(
        model or create_reasoning_model(settings),
        knowledge or ChromaKnowledgeStore(settings.knowledge_path, settings.knowledge_collection),
        boundary,
        policy,
        tracker,
        database,
        escalation=escalation,
        audit=audit or JsonlAuditSink(settings.audit_path),
        reconfirmation=reconfirmation,
        settings=settings,
    )

    logger.info("Agent runtime ready (default tier %s)", policy.get_default_tier().value)
    return AgentRuntime(settings, database, policy, tracker, escalation, orchestrator, boundary)


_runtime: AgentRuntime | None = None


def get_runtime() -> AgentRuntime:
    """Get the runtime singleton."""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def set_runtime(runtime: AgentRuntime | None) -> None:
    global _runtime
    _runtime = runtime


async def close_runtime() -> None:
    """Release the singleton, if one was built."""
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None
        logger.info("Agent runtime closed")


__all__ = ["AgentRuntime", "build_runtime", "close_runtime", "get_runtime", "set_runtime"]
