"""Schema definitions."""

from packages.core.schemas.models import (
    ActionStatus,
    AgentAction,
    ApprovalOutcome,
    ApprovalPattern,
    AutonomyTier,
    ConversationTurn,
    Decision,
    DispatchError,
    DispatchResult,
    Domain,
    DomainTrust,
    EscalationPrompt,
    EscalationStatus,
    OrchestratorResponse,
    PendingAction,
    PendingActionStatus,
    PolicyEvaluation,
    PreviewExample,
    RiskLevel,
    SearchResult,
    TIER_ORDER,
    TokenUsage,
    ToolCallError,
)

__all__ = [
    "ActionStatus",
    "AgentAction",
    "ApprovalOutcome",
    "ApprovalPattern",
    "AutonomyTier",
    "ConversationTurn",
    "Decision",
    "DispatchError",
    "DispatchResult",
    "Domain",
    "DomainTrust",
    "EscalationPrompt",
    "EscalationStatus",
    "OrchestratorResponse",
    "PendingAction",
    "PendingActionStatus",
    "PolicyEvaluation",
    "PreviewExample",
    "RiskLevel",
    "SearchResult",
    "TIER_ORDER",
    "TokenUsage",
    "ToolCallError",
]
