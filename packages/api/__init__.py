"""Personal Agent Core API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from packages.api.agent import router as agent_router
from packages.api.autonomy import router as autonomy_router
from packages.api.config import Settings
from packages.api.runtime import AgentRuntime, close_runtime, get_runtime

settings = Settings()


# =============================================================================
# Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "1.0.0"
    config_locked: bool = False
    pending_actions: int = 0


# =============================================================================
# FastAPI App
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await close_runtime()


app = FastAPI(
    title=settings.api_title,
    description="Autonomy policy, approval queue and escalation for a personal agent.",
    version=settings.api_version,
    docs_url="/docs" if settings.docs_enabled else None,
    redoc_url="/redoc" if settings.docs_enabled else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

app.state.settings = settings

app.include_router(agent_router)
app.include_router(autonomy_router)


# =============================================================================
# Health Endpoint
# =============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(runtime: AgentRuntime = Depends(get_runtime)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=settings.api_version,
        config_locked=runtime.guard.engaged,
        pending_actions=len(runtime.orchestrator.get_pending_actions()),
    )


__all__ = ["app"]
