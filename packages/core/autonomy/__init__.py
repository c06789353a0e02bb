"""Autonomy policy engine.

Maps every attempted action to auto_approve or requires_approval from:
- the action's RiskLevel (read / write / execute)
- the AutonomyTier configured for the action's Domain
- a fixed safety override list that no configuration can relax

Unmapped actions never auto-approve.
"""

from __future__ import annotations

import logging
from typing import Callable

from packages.core.autonomy.store import PolicyStore
from packages.core.autonomy.tables import (
    ACTION_DOMAINS,
    ACTION_RISKS,
    SAFETY_OVERRIDE_ACTIONS,
    SENSITIVE_ACTIONS,
    TIER_RISK_MATRIX,
    UNMAPPED_DOMAIN,
    UNMAPPED_RISK,
    is_mapped,
    matrix_decision,
    resolve,
)
from packages.core.errors import ProtectedConfigLockedError
from packages.core.schemas.models import (
    AutonomyTier,
    Decision,
    Domain,
    PolicyEvaluation,
    RiskLevel,
)

logger = logging.getLogger(__name__)

TierChangedCallback = Callable[[Domain, AutonomyTier], None]


class ProtectedConfigGuard:
    """Lock over tier mutations, held while an inherited/managed config is active."""

    def __init__(self):
        self._reason: str | None = None

    @property
    def engaged(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        return self._reason

    def engage(self, reason: str) -> None:
        self._reason = reason
        logger.info("Protected config engaged: %s", reason)

    def release(self) -> None:
        if self._reason is not None:
            logger.info("Protected config released")
        self._reason = None

    def check(self) -> None:
        """Raise if mutations are currently locked."""
        if self._reason is not None:
            raise ProtectedConfigLockedError(self._reason)


class AutonomyPolicy:
    """Decides whether an action may run without asking the user."""

    def __init__(
        self,
        store: PolicyStore,
        guard: ProtectedConfigGuard | None = None,
        on_tier_changed: TierChangedCallback | None = None,
    ):
        self.store = store
        self.guard = guard or ProtectedConfigGuard()
        self.on_tier_changed = on_tier_changed

    # =========================================================================
    # Classification
    # =========================================================================

    @staticmethod
    def domain_for_action(action_type: str) -> Domain:
        return resolve(ACTION_DOMAINS, action_type, UNMAPPED_DOMAIN)

    @staticmethod
    def risk_for_action(action_type: str) -> RiskLevel:
        return resolve(ACTION_RISKS, action_type, UNMAPPED_RISK)

    @staticmethod
    def is_sensitive(action_type: str) -> bool:
        return action_type in SENSITIVE_ACTIONS

    # =========================================================================
    # Decisions
    # =========================================================================

    def evaluate(self, action_type: str) -> PolicyEvaluation:
        """Decision plus the domain, risk and tier it was derived from."""
        domain = self.domain_for_action(action_type)
        risk = self.risk_for_action(action_type)
        tier = self.store.get_tier(domain)
        mapped = is_mapped(action_type)

        if action_type in SAFETY_OVERRIDE_ACTIONS:
            decision, reason = Decision.REQUIRES_APPROVAL, "safety_override"
        elif not mapped:
            decision, reason = Decision.REQUIRES_APPROVAL, "unmapped_action"
        else:
            decision, reason = matrix_decision(tier, risk), "tier_matrix"

        logger.debug(
            "Policy %s: domain=%s risk=%s tier=%s -> %s (%s)",
            action_type, domain.value, risk.value, tier.value, decision.value, reason,
        )
        return PolicyEvaluation(
            action_type=action_type,
            domain=domain,
            risk=risk,
            tier=tier,
            decision=decision,
            mapped=mapped,
            reason=reason,
        )

    def decide(self, action_type: str) -> Decision:
        return self.evaluate(action_type).decision

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_domain_tier(self, domain: Domain) -> AutonomyTier:
        return self.store.get_tier(domain)

    def set_domain_tier(self, domain: Domain, tier: AutonomyTier) -> None:
        """Persist a tier override for a domain.

        Raises:
            ProtectedConfigLockedError: If the guard is engaged.
        """
        self.guard.check()
        domain = Domain(domain)
        tier = AutonomyTier(tier)
        self.store.set_tier(domain, tier)
        logger.info("Domain %s tier set to %s", domain.value, tier.value)
        self._notify(domain, tier)

    def set_default_tier(self, tier: AutonomyTier) -> None:
        self.guard.check()
        tier = AutonomyTier(tier)
        self.store.set_default_tier(tier)
        logger.info("Default tier set to %s", tier.value)

    def get_default_tier(self) -> AutonomyTier:
        return self.store.get_default_tier()

    def get_config(self) -> dict[Domain, AutonomyTier]:
        """Effective tier for every domain."""
        default = self.store.get_default_tier()
        overrides = self.store.get_overrides()
        return {domain: overrides.get(domain, default) for domain in Domain}

    def _notify(self, domain: Domain, tier: AutonomyTier) -> None:
        if self.on_tier_changed is None:
            return
        try:
            self.on_tier_changed(domain, tier)
        except Exception:
            logger.exception("Tier change callback failed for %s", domain.value)


__all__ = [
    "ACTION_DOMAINS",
    "ACTION_RISKS",
    "AutonomyPolicy",
    "PolicyStore",
    "ProtectedConfigGuard",
    "SAFETY_OVERRIDE_ACTIONS",
    "SENSITIVE_ACTIONS",
    "TIER_RISK_MATRIX",
]
