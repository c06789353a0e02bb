"""API endpoint tests."""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from fakes import FakeKnowledge, FakeModel, MemoryAuditSink, RecordingBoundary, tool_response
from packages.api import app
from packages.api.runtime import AgentRuntime, build_runtime, get_runtime
from packages.core.config import AgentSettings
from packages.core.confirmation import StaticReconfirmation
from packages.core.errors import ReasoningModelError
from packages.core.orchestrator import ExtensionTool
from packages.core.persistence import Database
from packages.core.schemas.models import AutonomyTier, Domain

SEND_ARGS = {"to": ["x@example.com"], "subject": "Lunch", "body": "Noon works."}


@pytest.fixture
def runtime() -> Iterator[AgentRuntime]:
    """Runtime on an in-memory database with fake collaborators."""
    database = Database("sqlite://")
    database.create_all()
    runtime = build_runtime(
        AgentSettings(_env_file=None, default_tier=AutonomyTier.PARTNER),
        database=database,
        model=FakeModel(),
        knowledge=FakeKnowledge(),
        boundary=RecordingBoundary(),
        audit=MemoryAuditSink(),
        reconfirmation=StaticReconfirmation(allow=True),
    )
    yield runtime
    database.dispose()


@pytest.fixture
def client(runtime: AgentRuntime) -> Iterator[TestClient]:
    """Test client fixture."""
    app.dependency_overrides[get_runtime] = lambda: runtime
    yield TestClient(app)
    app.dependency_overrides.clear()


def queue_send(client: TestClient, runtime: AgentRuntime) -> str:
    runtime.orchestrator.model.responses = [tool_response(("send_email", SEND_ARGS))]
    response = client.post("/agent/messages", json={"text": "email X about lunch"})
    assert response.status_code == 200
    return response.json()["actions"][0]["id"]


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_returns_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "1.0.0"
        assert data["config_locked"] is False
        assert data["pending_actions"] == 0

    def test_health_counts_pending(self, client: TestClient, runtime: AgentRuntime) -> None:
        queue_send(client, runtime)
        assert client.get("/health").json()["pending_actions"] == 1


class TestMessageEndpoints:
    """Tests for conversation endpoints."""

    def test_message_round_trip(self, client: TestClient) -> None:
        response = client.post("/agent/messages", json={"text": "hello"})
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Done."

        turns = client.get(f"/agent/conversations/{data['conversation_id']}")
        assert turns.status_code == 200
        assert [t["role"] for t in turns.json()] == ["user", "assistant"]

    def test_empty_text_rejected(self, client: TestClient) -> None:
        """Empty text is rejected with 422."""
        response = client.post("/agent/messages", json={"text": ""})
        assert response.status_code == 422

    def test_unknown_conversation(self, client: TestClient) -> None:
        assert client.get("/agent/conversations/nope").status_code == 404

    def test_model_failure_is_bad_gateway(self, client: TestClient, runtime: AgentRuntime) -> None:
        runtime.orchestrator.model.responses = [ReasoningModelError("provider down")]
        response = client.post("/agent/messages", json={"text": "hello"})
        assert response.status_code == 502


class TestPendingEndpoints:
    """Tests for the approval queue endpoints."""

    def test_send_is_queued(self, client: TestClient, runtime: AgentRuntime) -> None:
        action_id = queue_send(client, runtime)

        data = client.get("/agent/pending").json()
        assert data["total"] == 1
        assert data["actions"][0]["id"] == action_id
        assert data["actions"][0]["action_type"] == "email.send"
        assert runtime.boundary.dispatched == []

    def test_approve(self, client: TestClient, runtime: AgentRuntime) -> None:
        action_id = queue_send(client, runtime)

        response = client.post(f"/agent/pending/{action_id}/approve")
        assert response.status_code == 200
        data = response.json()
        assert data["action"]["status"] == "approved"
        assert data["action"]["result"]["success"] is True
        assert data["escalation_prompt"] is None
        assert len(runtime.boundary.dispatched) == 1

        assert client.post(f"/agent/pending/{action_id}/approve").status_code == 404
        assert len(runtime.boundary.dispatched) == 1

    def test_reject(self, client: TestClient, runtime: AgentRuntime) -> None:
        action_id = queue_send(client, runtime)

        response = client.post(f"/agent/pending/{action_id}/reject")
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert runtime.boundary.dispatched == []

        history = client.get("/agent/history").json()
        assert [a["id"] for a in history] == [action_id]

    def test_unknown_action(self, client: TestClient) -> None:
        assert client.post("/agent/pending/nope/approve").status_code == 404
        assert client.post("/agent/pending/nope/reject").status_code == 404

    def test_unconfirmed_sensitive_approval_is_forbidden(self, client: TestClient, runtime: AgentRuntime) -> None:
        runtime.orchestrator.register_tools(
            [ExtensionTool(name="call_service", description="Call a service", action_type="service.api_call")]
        )
        runtime.orchestrator.model.responses = [tool_response(("call_service", {"service": "bank"}))]
        action_id = client.post("/agent/messages", json={"text": "refresh bank"}).json()["actions"][0]["id"]

        runtime.orchestrator.reconfirmation = StaticReconfirmation(allow=False)
        response = client.post(f"/agent/pending/{action_id}/approve")

        assert response.status_code == 403
        assert client.get("/agent/pending").json()["total"] == 1


class TestTrustEndpoints:
    def test_pattern_stats_and_threshold(self, client: TestClient, runtime: AgentRuntime) -> None:
        action_id = queue_send(client, runtime)
        client.post(f"/agent/pending/{action_id}/approve")

        stats = client.post("/agent/patterns/stats", json={"action_type": "email.send", "payload": SEND_ARGS})
        assert stats.json() == {"action_type": "email.send", "approval_count": 1, "threshold": 3}

        updated = client.put(
            "/agent/patterns/threshold",
            json={"action_type": "email.send", "payload": SEND_ARGS, "threshold": 5},
        )
        assert updated.json()["threshold"] == 5
        assert len(client.get("/agent/patterns").json()) == 1

    def test_threshold_must_be_positive(self, client: TestClient) -> None:
        response = client.put(
            "/agent/patterns/threshold",
            json={"action_type": "email.send", "payload": {}, "threshold": 0},
        )
        assert response.status_code == 422

    def test_domain_trust(self, client: TestClient, runtime: AgentRuntime) -> None:
        action_id = queue_send(client, runtime)
        client.post(f"/agent/pending/{action_id}/approve")

        data = client.get("/agent/trust/communication").json()
        assert data["consecutive_approvals"] == 1
        assert client.get("/agent/trust/nowhere").status_code == 422


class TestAutonomyEndpoints:
    """Tests for tier configuration and the lock."""

    def test_config(self, client: TestClient) -> None:
        data = client.get("/autonomy/config").json()
        assert data["default_tier"] == "partner"
        assert len(data["domains"]) == len(Domain)
        assert data["locked"] is False

    def test_set_domain_tier(self, client: TestClient) -> None:
        response = client.put("/autonomy/domains/finance", json={"tier": "guardian"})
        assert response.status_code == 200
        assert response.json()["domains"]["finance"] == "guardian"

        decision = client.get("/autonomy/decide/finance.plaid_sync").json()
        assert decision["decision"] == "requires_approval"

    def test_invalid_tier(self, client: TestClient) -> None:
        assert client.put("/autonomy/domains/finance", json={"tier": "overlord"}).status_code == 422

    def test_lock_blocks_changes(self, client: TestClient, runtime: AgentRuntime) -> None:
        """Only the in-process workflow that engaged the lock can release it."""
        runtime.guard.engage("inherited configuration active")

        config = client.get("/autonomy/config").json()
        assert config["locked"] is True
        assert config["lock_reason"] == "inherited configuration active"
        assert client.get("/health").json()["config_locked"] is True

        assert client.post("/autonomy/unlock").status_code == 404
        assert client.put("/autonomy/default", json={"tier": "alter_ego"}).status_code == 409
        assert client.put("/autonomy/domains/finance", json={"tier": "alter_ego"}).status_code == 409

        runtime.guard.release()
        response = client.put("/autonomy/default", json={"tier": "alter_ego"})
        assert response.status_code == 200
        assert response.json()["default_tier"] == "alter_ego"

    def test_decide_unmapped(self, client: TestClient) -> None:
        data = client.get("/autonomy/decide/teleport.now").json()
        assert data["domain"] == "system"
        assert data["decision"] == "requires_approval"


class TestEscalationEndpoints:
    def test_escalation_flow(self, client: TestClient, runtime: AgentRuntime) -> None:
        client.put("/autonomy/domains/communication", json={"tier": "guardian"})
        outcome = None
        for i in range(10):
            runtime.orchestrator.model.responses = [
                tool_response(("archive_email", {"message_ids": [f"m{i}"]}))
            ]
            action_id = client.post("/agent/messages", json={"text": "archive"}).json()["actions"][0]["id"]
            outcome = client.post(f"/agent/pending/{action_id}/approve").json()

        prompt = outcome["escalation_prompt"]
        assert prompt is not None
        assert client.get("/autonomy/escalations").json()["total"] == 1

        accepted = client.post(f"/autonomy/escalations/{prompt['id']}/accept")
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "accepted"
        assert runtime.policy.get_domain_tier(Domain.COMMUNICATION) == AutonomyTier.PARTNER

        assert client.post(f"/autonomy/escalations/{prompt['id']}/dismiss").status_code == 404
        assert client.get("/autonomy/escalations?include_resolved=true").json()["total"] == 1
