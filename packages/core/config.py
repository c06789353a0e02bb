"""Agent core configuration via pydantic-settings."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from packages.core.schemas.models import AutonomyTier, Domain


class AgentSettings(BaseSettings):
    """Core settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Persistence
    database_url: str = "sqlite:///data/agent.db"

    # Autonomy defaults (seeded only when nothing is persisted yet)
    default_tier: AutonomyTier = AutonomyTier.PARTNER
    domain_overrides: dict[Domain, AutonomyTier] = {}

    # Trust and escalation
    approval_threshold: int = 3
    escalation_threshold: int = 10
    escalation_cooldown_days: int = 7
    escalation_prompt_ttl_days: int = 7

    # Reasoning model
    llm_provider: Literal["anthropic", "openai"] = "anthropic"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"
    openai_model: str = "gpt-4o"
    max_tokens: int = 1024
    temperature: float = 0.7

    # Conversation
    assistant_name: str = "Aide"
    history_turns: int = 10
    context_results: int = 5

    # Execution boundary
    boundary_url: str = "http://127.0.0.1:7420"
    boundary_signing_key: str = ""

    # Knowledge store
    knowledge_path: str = "data/knowledge"
    knowledge_collection: str = "user_knowledge"

    # Audit
    audit_path: str = "data/audit/actions.jsonl"

    @property
    def signing_key_bytes(self) -> bytes:
        return self.boundary_signing_key.encode("utf-8") if self.boundary_signing_key else b""
