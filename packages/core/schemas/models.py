"""Core data models for the agent autonomy core."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class Domain(str, Enum):
    """Functional areas the agent can act within."""

    COMMUNICATION = "communication"
    CALENDAR = "calendar"
    FINANCE = "finance"
    HEALTH = "health"
    FILES = "files"
    CONTACTS = "contacts"
    SERVICES = "services"
    WEB = "web"
    REMINDERS = "reminders"
    MESSAGING = "messaging"
    CLIPBOARD = "clipboard"
    LOCATION = "location"
    VOICE = "voice"
    CLOUD_STORAGE = "cloud_storage"
    SYSTEM = "system"


class AutonomyTier(str, Enum):
    """User-configured trust level, ordered guardian < partner < alter_ego."""

    GUARDIAN = "guardian"
    PARTNER = "partner"
    ALTER_EGO = "alter_ego"

    @property
    def rank(self) -> int:
        return TIER_ORDER.index(self)

    def next_tier(self) -> AutonomyTier | None:
        """The tier exactly one step more permissive, or None at the top."""
        index = self.rank + 1
        if index >= len(TIER_ORDER):
            return None
        return TIER_ORDER[index]


TIER_ORDER: tuple[AutonomyTier, ...] = (
    AutonomyTier.GUARDIAN,
    AutonomyTier.PARTNER,
    AutonomyTier.ALTER_EGO,
)


class RiskLevel(str, Enum):
    """Reversibility/impact class of an action, ordered read < write < execute."""

    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"


class Decision(str, Enum):
    """Outcome of policy evaluation for one action attempt."""

    AUTO_APPROVE = "auto_approve"
    REQUIRES_APPROVAL = "requires_approval"


class PendingActionStatus(str, Enum):
    """Lifecycle of a queued action."""

    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class ActionStatus(str, Enum):
    """Outcome of a boundary-crossing action within one turn."""

    PENDING_APPROVAL = "pending_approval"
    EXECUTED = "executed"
    FAILED = "failed"
    AUTHORIZATION_REQUIRED = "authorization_required"


class EscalationStatus(str, Enum):
    """Status of an escalation prompt."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DISMISSED = "dismissed"
    EXPIRED = "expired"


# =============================================================================
# Policy
# =============================================================================


class PolicyEvaluation(BaseModel):
    """Decision for one action plus the inputs that produced it."""

    action_type: str
    domain: Domain
    risk: RiskLevel
    tier: AutonomyTier
    decision: Decision
    mapped: bool = True
    reason: str = Field(default="tier_matrix", description="safety_override, unmapped_action or tier_matrix")


# =============================================================================
# Execution boundary
# =============================================================================


class DispatchError(BaseModel):
    """Error reported by the execution boundary."""

    code: str
    message: str


class DispatchResult(BaseModel):
    """Result of a single boundary dispatch."""

    success: bool
    data: Any = None
    error: DispatchError | None = None

    @classmethod
    def failure(cls, code: str, message: str) -> DispatchResult:
        return cls(success=False, error=DispatchError(code=code, message=message))


# =============================================================================
# Actions
# =============================================================================


class PendingAction(BaseModel):
    """An action awaiting an explicit human decision."""

    id: str = Field(default_factory=new_id)
    action_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    domain: Domain
    tier: AutonomyTier
    reasoning: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    status: PendingActionStatus = PendingActionStatus.PENDING_APPROVAL
    resolved_at: datetime | None = None
    result: DispatchResult | None = None


class AgentAction(BaseModel):
    """A boundary-crossing action taken (or queued) during one turn."""

    id: str = Field(default_factory=new_id)
    tool: str
    action_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    domain: Domain
    tier: AutonomyTier
    risk: RiskLevel
    decision: Decision
    status: ActionStatus
    reasoning: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    executed_at: datetime | None = None
    result: DispatchResult | None = None


class ToolCallError(BaseModel):
    """A tool call that could not be processed; the turn continued without it."""

    tool: str
    kind: str = Field(description="unknown_tool, parse_error or execution_error")
    message: str


# =============================================================================
# Trust
# =============================================================================


class ApprovalPattern(BaseModel):
    """Learned trust for one kind of request."""

    action_type: str
    fingerprint: str
    approval_count: int = 0
    rejection_count: int = 0
    threshold: int = 3
    last_approval_at: datetime | None = None
    last_rejection_at: datetime | None = None

    @property
    def kind(self) -> str:
        """Request kind encoded in the fingerprint, e.g. 'reply' or 'archive'."""
        return self.fingerprint.split(":", 1)[0]


class DomainTrust(BaseModel):
    """Approval streak and totals for one domain."""

    domain: Domain
    consecutive_approvals: int = 0
    total_approvals: int = 0
    total_rejections: int = 0
    last_approval_at: datetime | None = None
    last_rejection_at: datetime | None = None


# =============================================================================
# Escalation
# =============================================================================


class PreviewExample(BaseModel):
    """Concrete before/after behaviour shown in an escalation prompt."""

    description: str
    current_behavior: str
    new_behavior: str
    estimated_time_saved: str


class EscalationPrompt(BaseModel):
    """Proposal to raise a domain's tier after a streak of manual approvals."""

    id: str = Field(default_factory=new_id)
    domain: Domain
    current_tier: AutonomyTier
    proposed_tier: AutonomyTier
    consecutive_approvals: int
    message: str
    preview_examples: list[PreviewExample] = Field(default_factory=list)
    estimated_time_saved: str
    estimated_time_saved_seconds: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    status: EscalationStatus = EscalationStatus.PENDING
    responded_at: datetime | None = None


# =============================================================================
# Conversation
# =============================================================================


class SearchResult(BaseModel):
    """A single knowledge-store hit."""

    id: str
    title: str = ""
    content: str = ""
    source: str = ""
    score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationTurn(BaseModel):
    """One stored message of a conversation."""

    id: str = Field(default_factory=new_id)
    conversation_id: str
    role: str
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    actions: list[AgentAction] = Field(default_factory=list)


class TokenUsage(BaseModel):
    prompt: int = 0
    completion: int = 0


class OrchestratorResponse(BaseModel):
    """Reply to a user message plus the action ledger for the turn."""

    message: str
    conversation_id: str
    actions: list[AgentAction] = Field(default_factory=list)
    errors: list[ToolCallError] = Field(default_factory=list)
    context: list[SearchResult] = Field(default_factory=list)
    tokens_used: TokenUsage = Field(default_factory=TokenUsage)


class ApprovalOutcome(BaseModel):
    """Result of approving a pending action."""

    action: PendingAction
    escalation_prompt: EscalationPrompt | None = None
