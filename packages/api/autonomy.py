"""Autonomy configuration and escalation API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from packages.api.errors import to_http_error
from packages.api.runtime import AgentRuntime, get_runtime
from packages.core.errors import AgentError
from packages.core.schemas.models import (
    AutonomyTier,
    Domain,
    EscalationPrompt,
    PolicyEvaluation,
)

router = APIRouter(prefix="/autonomy", tags=["Autonomy"])


# =============================================================================
# Request/Response Models
# =============================================================================


class TierRequest(BaseModel):
    tier: AutonomyTier


class AutonomyConfigResponse(BaseModel):
    """Effective tier for every domain."""

    default_tier: AutonomyTier
    domains: dict[Domain, AutonomyTier]
    locked: bool = False
    lock_reason: str | None = None


class EscalationListResponse(BaseModel):
    prompts: list[EscalationPrompt]
    total: int


def _config_response(runtime: AgentRuntime) -> AutonomyConfigResponse:
    return AutonomyConfigResponse(
        default_tier=runtime.policy.get_default_tier(),
        domains=runtime.policy.get_config(),
        locked=runtime.guard.engaged,
        lock_reason=runtime.guard.reason,
    )


# =============================================================================
# Tier Configuration Endpoints
# =============================================================================


@router.get("/config", response_model=AutonomyConfigResponse)
async def get_config(runtime: AgentRuntime = Depends(get_runtime)) -> AutonomyConfigResponse:
    return _config_response(runtime)


@router.put("/domains/{domain}", response_model=AutonomyConfigResponse)
async def set_domain_tier(
    domain: Domain,
    request: TierRequest,
    runtime: AgentRuntime = Depends(get_runtime),
) -> AutonomyConfigResponse:
    """Set the tier for one domain. Refused while the configuration is locked."""
    try:
        runtime.policy.set_domain_tier(domain, request.tier)
    except AgentError as e:
        raise to_http_error(e) from e
    return _config_response(runtime)


@router.put("/default", response_model=AutonomyConfigResponse)
async def set_default_tier(
    request: TierRequest,
    runtime: AgentRuntime = Depends(get_runtime),
) -> AutonomyConfigResponse:
    try:
        runtime.policy.set_default_tier(request.tier)
    except AgentError as e:
        raise to_http_error(e) from e
    return _config_response(runtime)


@router.get("/decide/{action_type}", response_model=PolicyEvaluation)
async def decide(action_type: str, runtime: AgentRuntime = Depends(get_runtime)) -> PolicyEvaluation:
    """Explain how an action type would be handled right now."""
    return runtime.policy.evaluate(action_type)



# =============================================================================
# Escalation Endpoints
# =============================================================================


@router.get("/escalations", response_model=EscalationListResponse)
async def list_escalations(
    include_resolved: bool = False,
    runtime: AgentRuntime = Depends(get_runtime),
) -> EscalationListResponse:
    """List pending escalation prompts, or every prompt with ``include_resolved``."""
    engine = runtime.escalation
    prompts = engine.get_all_prompts() if include_resolved else engine.get_active_prompts()
    return EscalationListResponse(prompts=prompts, total=len(prompts))


@router.post("/escalations/{prompt_id}/accept", response_model=EscalationPrompt)
async def accept_escalation(prompt_id: str, runtime: AgentRuntime = Depends(get_runtime)) -> EscalationPrompt:
    """Raise the domain one tier."""
    try:
        return runtime.escalation.accept(prompt_id)
    except AgentError as e:
        raise to_http_error(e) from e


@router.post("/escalations/{prompt_id}/dismiss", response_model=EscalationPrompt, status_code=status.HTTP_200_OK)
async def dismiss_escalation(prompt_id: str, runtime: AgentRuntime = Depends(get_runtime)) -> EscalationPrompt:
    """Keep the current tier and start the cooldown."""
    try:
        return runtime.escalation.dismiss(prompt_id)
    except AgentError as e:
        raise to_http_error(e) from e
