"""Persistent autonomy configuration (default tier + per-domain overrides)."""

from __future__ import annotations

import logging

from sqlalchemy import select

from packages.core.persistence import (
    Database,
    domain_tiers,
    policy_settings,
    to_iso,
    upsert,
)
from packages.core.schemas.models import AutonomyTier, Domain, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIER_KEY = "default_tier"


class PolicyStore:
    """Reads and writes tier configuration through the database handle."""

    def __init__(
        self,
        database: Database,
        default_tier: AutonomyTier = AutonomyTier.PARTNER,
        domain_overrides: dict[Domain, AutonomyTier] | None = None,
    ):
        self.database = database
        self._seed(default_tier, domain_overrides or {})

    def _seed(self, default_tier: AutonomyTier, overrides: dict[Domain, AutonomyTier]) -> None:
        """Write initial values only if nothing has been persisted yet."""
        with self.database.transaction() as conn:
            existing = conn.execute(
                select(policy_settings.c.value).where(policy_settings.c.key == DEFAULT_TIER_KEY)
            ).scalar_one_or_none()
            if existing is not None:
                return

            conn.execute(policy_settings.insert().values(key=DEFAULT_TIER_KEY, value=default_tier.value))
            now = to_iso(utcnow())
            for domain, tier in overrides.items():
                conn.execute(
                    domain_tiers.insert().values(domain=domain.value, tier=tier.value, updated_at=now)
                )
        logger.info("Seeded autonomy config: default=%s, overrides=%d", default_tier.value, len(overrides))

    # =========================================================================
    # Reads
    # =========================================================================

    def get_default_tier(self) -> AutonomyTier:
        with self.database.connect() as conn:
            value = conn.execute(
                select(policy_settings.c.value).where(policy_settings.c.key == DEFAULT_TIER_KEY)
            ).scalar_one_or_none()
        return AutonomyTier(value) if value else AutonomyTier.GUARDIAN

    def get_override(self, domain: Domain) -> AutonomyTier | None:
        with self.database.connect() as conn:
            value = conn.execute(
                select(domain_tiers.c.tier).where(domain_tiers.c.domain == domain.value)
            ).scalar_one_or_none()
        return AutonomyTier(value) if value else None

    def get_tier(self, domain: Domain) -> AutonomyTier:
        """Override if present, otherwise the default tier."""
        return self.get_override(domain) or self.get_default_tier()

    def get_overrides(self) -> dict[Domain, AutonomyTier]:
        with self.database.connect() as conn:
            rows = conn.execute(select(domain_tiers.c.domain, domain_tiers.c.tier)).all()
        return {Domain(row.domain): AutonomyTier(row.tier) for row in rows}

    # =========================================================================
    # Writes
    # =========================================================================

    def set_tier(self, domain: Domain, tier: AutonomyTier) -> None:
        with self.database.transaction() as conn:
            upsert(
                conn,
                domain_tiers,
                keys={"domain": domain.value},
                values={"tier": tier.value, "updated_at": to_iso(utcnow())},
            )

    def set_default_tier(self, tier: AutonomyTier) -> None:
        with self.database.transaction() as conn:
            upsert(
                conn,
                policy_settings,
                keys={"key": DEFAULT_TIER_KEY},
                values={"value": tier.value},
            )
