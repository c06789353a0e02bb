"""Shared fixtures: an in-memory database and fakes for every external collaborator."""

from __future__ import annotations

from datetime import timedelta
from typing import Iterator

import pytest

from fakes import FakeKnowledge, FakeModel, MemoryAuditSink, RecordingBoundary
from packages.core.autonomy import AutonomyPolicy, PolicyStore, ProtectedConfigGuard
from packages.core.config import AgentSettings
from packages.core.confirmation import StaticReconfirmation
from packages.core.escalation import EscalationEngine
from packages.core.orchestrator import Orchestrator
from packages.core.persistence import Database
from packages.core.schemas.models import AutonomyTier
from packages.core.trust import ApprovalTracker

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def database() -> Iterator[Database]:
    """Fresh in-memory database with the full schema."""
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def guard() -> ProtectedConfigGuard:
    return ProtectedConfigGuard()


@pytest.fixture
def policy(database: Database, guard: ProtectedConfigGuard) -> AutonomyPolicy:
    """Policy seeded with the partner default."""
    return AutonomyPolicy(PolicyStore(database, AutonomyTier.PARTNER), guard=guard)


@pytest.fixture
def tracker(database: Database) -> ApprovalTracker:
    return ApprovalTracker(database)


@pytest.fixture
def escalation(database: Database, policy: AutonomyPolicy, tracker: ApprovalTracker) -> EscalationEngine:
    return EscalationEngine(database, policy, tracker, threshold=10, cooldown=timedelta(days=7))


@pytest.fixture
def model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def knowledge() -> FakeKnowledge:
    return FakeKnowledge()


@pytest.fixture
def boundary() -> RecordingBoundary:
    return RecordingBoundary()


@pytest.fixture
def audit() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture
def reconfirmation() -> StaticReconfirmation:
    return StaticReconfirmation(allow=True)


@pytest.fixture
def orchestrator(
    model: FakeModel,
    knowledge: FakeKnowledge,
    boundary: RecordingBoundary,
    policy: AutonomyPolicy,
    tracker: ApprovalTracker,
    database: Database,
    escalation: EscalationEngine,
    audit: MemoryAuditSink,
    reconfirmation: StaticReconfirmation,
) -> Orchestrator:
    return Orchestrator(
        model,
        knowledge,
        boundary,
        policy,
        tracker,
        database,
        escalation=escalation,
        audit=audit,
        reconfirmation=reconfirmation,
        settings=AgentSettings(_env_file=None, assistant_name="Aide"),
    )
