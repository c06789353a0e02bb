"""Conversation and approval-queue API endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from packages.api.errors import to_http_error
from packages.api.runtime import AgentRuntime, get_runtime
from packages.core.errors import AgentError
from packages.core.schemas.models import (
    ApprovalOutcome,
    ApprovalPattern,
    ConversationTurn,
    Domain,
    DomainTrust,
    OrchestratorResponse,
    PendingAction,
)

router = APIRouter(prefix="/agent", tags=["Agent"])


# =============================================================================
# Request/Response Models
# =============================================================================


class MessageRequest(BaseModel):
    """A user message for the orchestrator."""

    text: str = Field(..., min_length=1, max_length=20000)
    conversation_id: str | None = Field(default=None, max_length=64)


class ApprovalStatsRequest(BaseModel):
    """Identifies an approval pattern by action type and request payload."""

    action_type: str = Field(..., min_length=1, max_length=64)
    payload: dict[str, Any] = Field(default_factory=dict)


class ApprovalStatsResponse(BaseModel):
    action_type: str
    approval_count: int
    threshold: int


class ThresholdRequest(ApprovalStatsRequest):
    threshold: int = Field(..., ge=1)


class PendingListResponse(BaseModel):
    actions: list[PendingAction]
    total: int


# =============================================================================
# Conversation Endpoints
# =============================================================================


@router.post("/messages", response_model=OrchestratorResponse)
async def send_message(
    request: MessageRequest,
    runtime: AgentRuntime = Depends(get_runtime),
) -> OrchestratorResponse:
    """Process one user message."""
    try:
        return await runtime.orchestrator.process_message(request.text, request.conversation_id)
    except AgentError as e:
        raise to_http_error(e) from e


@router.get("/conversations/{conversation_id}", response_model=list[ConversationTurn])
async def get_conversation(
    conversation_id: str,
    runtime: AgentRuntime = Depends(get_runtime),
) -> list[ConversationTurn]:
    """Get every stored turn of a conversation."""
    if not runtime.orchestrator.conversations.exists(conversation_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Conversation '{conversation_id}' not found",
        )
    return runtime.orchestrator.get_conversation(conversation_id)


# =============================================================================
# Approval Queue Endpoints
# =============================================================================


@router.get("/pending", response_model=PendingListResponse)
async def list_pending(runtime: AgentRuntime = Depends(get_runtime)) -> PendingListResponse:
    """List actions awaiting approval, oldest first."""
    actions = runtime.orchestrator.get_pending_actions()
    return PendingListResponse(actions=actions, total=len(actions))


@router.get("/history", response_model=list[PendingAction])
async def list_history(
    limit: int = Query(default=50, ge=1, le=500),
    runtime: AgentRuntime = Depends(get_runtime),
) -> list[PendingAction]:
    """List approved and rejected actions, most recently resolved first."""
    return runtime.orchestrator.queue.list_history(limit=limit)


@router.post("/pending/{action_id}/approve", response_model=ApprovalOutcome)
async def approve_action(action_id: str, runtime: AgentRuntime = Depends(get_runtime)) -> ApprovalOutcome:
    """Approve and dispatch a queued action."""
    try:
        return await runtime.orchestrator.approve_action(action_id)
    except AgentError as e:
        raise to_http_error(e) from e


@router.post("/pending/{action_id}/reject", response_model=PendingAction)
async def reject_action(action_id: str, runtime: AgentRuntime = Depends(get_runtime)) -> PendingAction:
    """Reject a queued action without dispatching it."""
    try:
        return await runtime.orchestrator.reject_action(action_id)
    except AgentError as e:
        raise to_http_error(e) from e


# =============================================================================
# Trust Endpoints
# =============================================================================


@router.get("/patterns", response_model=list[ApprovalPattern])
async def list_patterns(runtime: AgentRuntime = Depends(get_runtime)) -> list[ApprovalPattern]:
    return runtime.orchestrator.get_approval_patterns()


@router.post("/patterns/stats", response_model=ApprovalStatsResponse)
async def pattern_stats(
    request: ApprovalStatsRequest,
    runtime: AgentRuntime = Depends(get_runtime),
) -> ApprovalStatsResponse:
    """Approval count and threshold for the pattern a payload belongs to."""
    orchestrator = runtime.orchestrator
    return ApprovalStatsResponse(
        action_type=request.action_type,
        approval_count=orchestrator.get_approval_count(request.action_type, request.payload),
        threshold=orchestrator.get_approval_threshold(request.action_type, request.payload),
    )


@router.put("/patterns/threshold", response_model=ApprovalStatsResponse)
async def set_pattern_threshold(
    request: ThresholdRequest,
    runtime: AgentRuntime = Depends(get_runtime),
) -> ApprovalStatsResponse:
    try:
        runtime.tracker.set_approval_threshold(request.action_type, request.payload, request.threshold)
    except ValueError as e:
        raise to_http_error(e) from e
    return ApprovalStatsResponse(
        action_type=request.action_type,
        approval_count=runtime.tracker.get_approval_count(request.action_type, request.payload),
        threshold=runtime.tracker.get_approval_threshold(request.action_type, request.payload),
    )


@router.get("/trust/{domain}", response_model=DomainTrust)
async def get_domain_trust(domain: Domain, runtime: AgentRuntime = Depends(get_runtime)) -> DomainTrust:
    return runtime.tracker.get_domain_trust(domain)
