"""Tests for the pending action queue."""

from __future__ import annotations

from datetime import timedelta

import pytest

from packages.core.hitl import PendingActionQueue
from packages.core.persistence import Database
from packages.core.schemas.models import (
    AutonomyTier,
    DispatchResult,
    Domain,
    PendingAction,
    PendingActionStatus,
    utcnow,
)


@pytest.fixture
def queue(database: Database) -> PendingActionQueue:
    return PendingActionQueue(database)


def make_action(**overrides) -> PendingAction:
    fields = {
        "action_type": "email.send",
        "payload": {"to": ["a@b.com"], "subject": "Hi", "body": "Hello"},
        "domain": Domain.COMMUNICATION,
        "tier": AutonomyTier.GUARDIAN,
        "reasoning": "User asked to send",
    }
    fields.update(overrides)
    return PendingAction(**fields)


class TestPendingActionQueue:
    def test_enqueue_and_get(self, queue: PendingActionQueue) -> None:
        action = queue.enqueue(make_action())
        stored = queue.get(action.id)

        assert stored is not None
        assert stored.payload == action.payload
        assert stored.status == PendingActionStatus.PENDING_APPROVAL
        assert stored.resolved_at is None

    def test_get_unknown(self, queue: PendingActionQueue) -> None:
        assert queue.get("missing") is None

    def test_list_pending_oldest_first(self, queue: PendingActionQueue) -> None:
        now = utcnow()
        newer = queue.enqueue(make_action(created_at=now))
        older = queue.enqueue(make_action(created_at=now - timedelta(minutes=5)))

        assert [a.id for a in queue.list_pending()] == [older.id, newer.id]

    def test_claim_transitions_exactly_once(self, queue: PendingActionQueue) -> None:
        action = queue.enqueue(make_action())

        first = queue.claim(action.id, PendingActionStatus.APPROVED)
        second = queue.claim(action.id, PendingActionStatus.REJECTED)

        assert first is not None
        assert first.status == PendingActionStatus.APPROVED
        assert first.resolved_at is not None
        assert second is None
        assert queue.get(action.id).status == PendingActionStatus.APPROVED

    def test_claim_unknown(self, queue: PendingActionQueue) -> None:
        assert queue.claim("missing", PendingActionStatus.APPROVED) is None

    def test_claim_requires_terminal_status(self, queue: PendingActionQueue) -> None:
        action = queue.enqueue(make_action())
        with pytest.raises(ValueError):
            queue.claim(action.id, PendingActionStatus.PENDING_APPROVAL)

    def test_resolved_actions_leave_pending_list_but_stay_in_history(self, queue: PendingActionQueue) -> None:
        approved = queue.enqueue(make_action())
        rejected = queue.enqueue(make_action(action_type="email.archive", payload={"message_ids": ["1"]}))
        waiting = queue.enqueue(make_action())

        queue.claim(approved.id, PendingActionStatus.APPROVED)
        queue.claim(rejected.id, PendingActionStatus.REJECTED)

        assert [a.id for a in queue.list_pending()] == [waiting.id]
        history = {a.id: a.status for a in queue.list_history()}
        assert history == {
            approved.id: PendingActionStatus.APPROVED,
            rejected.id: PendingActionStatus.REJECTED,
        }

    def test_record_result(self, queue: PendingActionQueue) -> None:
        action = queue.enqueue(make_action())
        queue.claim(action.id, PendingActionStatus.APPROVED)
        queue.record_result(action.id, DispatchResult.failure("SMTP_DOWN", "Mail server unreachable"))

        stored = queue.get(action.id)
        assert stored.result is not None
        assert stored.result.success is False
        assert stored.result.error.code == "SMTP_DOWN"
