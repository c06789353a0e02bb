"""Autonomy escalation.

Watches the per-domain approval streak and, once a guardian domain has been
manually approved often enough, proposes moving it up one tier. The user can
accept (tier goes up one step) or dismiss (no change, cooldown before the
next proposal). Either answer restarts the streak.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from sqlalchemy import and_, select, update

from packages.core.autonomy import AutonomyPolicy
from packages.core.errors import EscalationPromptNotFoundError
from packages.core.persistence import Database, escalation_prompts, from_iso, to_iso
from packages.core.schemas.models import (
    ApprovalPattern,
    AutonomyTier,
    Domain,
    EscalationPrompt,
    EscalationStatus,
    PreviewExample,
    utcnow,
)
from packages.core.trust import ApprovalTracker

logger = logging.getLogger(__name__)

DEFAULT_ESCALATION_THRESHOLD = 10
DEFAULT_COOLDOWN = timedelta(days=7)
DEFAULT_PROMPT_TTL = timedelta(days=7)

# (description, current behaviour, new behaviour, seconds saved per day)
PREVIEW_DESCRIPTIONS: dict[str, tuple[str, str, str, int]] = {
    "email.archive:archive": (
        "Archive routine emails",
        "Shows preview, waits for approval",
        "Archives automatically, shows in digest",
        120,
    ),
    "email.send:reply": (
        "Send replies",
        "Shows draft, waits for approval",
        "Sends replies automatically for routine threads",
        180,
    ),
    "email.send:new": (
        "Send new emails",
        "Shows draft, waits for approval",
        "Sends automatically, shows in digest with undo",
        60,
    ),
    "email.draft:reply_draft": (
        "Save reply drafts",
        "Shows draft content, waits for confirmation",
        "Saves drafts automatically",
        60,
    ),
    "calendar.create:create_event": (
        "Create calendar events",
        "Shows event details, waits for approval",
        "Creates events automatically, shows in digest",
        180,
    ),
    "reminder.create:default": (
        "Create reminders",
        "Shows reminder, waits for approval",
        "Creates reminders immediately",
        60,
    ),
}

FALLBACK_SECONDS = 60


def format_time_saved(seconds: int, unit: str = "day") -> str:
    """Render a duration as a short estimate such as '~5 min/day'."""
    if seconds >= 3600:
        hours = round(seconds / 3600, 1)
        text = f"{hours:g} hr"
    else:
        text = f"{max(1, round(seconds / 60))} min"
    return f"~{text}/{unit}"


def preview_for_pattern(pattern: ApprovalPattern) -> tuple[PreviewExample, int]:
    """Preview example and daily seconds saved for one approved pattern."""
    entry = PREVIEW_DESCRIPTIONS.get(f"{pattern.action_type}:{pattern.kind}")
    if entry:
        description, current, new, seconds = entry
        return (
            PreviewExample(
                description=description,
                current_behavior=current,
                new_behavior=new,
                estimated_time_saved=format_time_saved(seconds),
            ),
            seconds,
        )
    return (
        PreviewExample(
            description=f"{pattern.action_type} ({pattern.kind})",
            current_behavior="Requires manual approval",
            new_behavior="Handled automatically",
            estimated_time_saved=format_time_saved(FALLBACK_SECONDS, unit="action"),
        ),
        FALLBACK_SECONDS,
    )


class EscalationEngine:
    """Generates and resolves tier-escalation prompts."""

    def __init__(
        self,
        database: Database,
        policy: AutonomyPolicy,
        tracker: ApprovalTracker,
        threshold: int = DEFAULT_ESCALATION_THRESHOLD,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        prompt_ttl: timedelta = DEFAULT_PROMPT_TTL,
        assistant_name: str = "Aide",
    ):
        self.database = database
        self.policy = policy
        self.tracker = tracker
        self.threshold = threshold
        self.cooldown = cooldown
        self.prompt_ttl = prompt_ttl
        self.assistant_name = assistant_name

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate(self, domain: Domain) -> EscalationPrompt | None:
        """Create a prompt for the domain if it qualifies, else None."""
        domain = Domain(domain)
        tier = self.policy.get_domain_tier(domain)
        if tier != AutonomyTier.GUARDIAN:
            return None

        streak = self.tracker.get_streak(domain)
        if streak < self.threshold:
            return None

        self.expire_prompts()
        if self._is_suppressed(domain):
            logger.debug("Escalation for %s suppressed (pending or cooling down)", domain.value)
            return None

        proposed = tier.next_tier()
        if proposed is None:
            return None

        prompt = self._build_prompt(domain, tier, proposed, streak)
        with self.database.transaction() as conn:
            conn.execute(escalation_prompts.insert().values(**self._prompt_to_row(prompt)))

        logger.info(
            "Escalation prompt %s: %s %s -> %s after %d approvals",
            prompt.id, domain.value, tier.value, proposed.value, streak,
        )
        return prompt

    def _is_suppressed(self, domain: Domain) -> bool:
        now = to_iso(utcnow())
        with self.database.connect() as conn:
            row = conn.execute(
                select(escalation_prompts.c.id).where(
                    escalation_prompts.c.domain == domain.value,
                    (escalation_prompts.c.status == EscalationStatus.PENDING.value)
                    | and_(
                        escalation_prompts.c.status == EscalationStatus.DISMISSED.value,
                        escalation_prompts.c.expires_at > now,
                    ),
                ).limit(1)
            ).first()
        return row is not None

    def _build_prompt(
        self,
        domain: Domain,
        tier: AutonomyTier,
        proposed: AutonomyTier,
        streak: int,
    ) -> EscalationPrompt:
        previews: list[PreviewExample] = []
        seconds = 0
        for pattern in self.tracker.get_patterns(domain):
            if pattern.approval_count == 0:
                continue
            preview, saved = preview_for_pattern(pattern)
            previews.append(preview)
            seconds += saved

        if not previews:
            seconds = FALLBACK_SECONDS
            previews.append(
                PreviewExample(
                    description=f"Routine {domain.value.replace('_', ' ')} actions",
                    current_behavior="Requires manual approval",
                    new_behavior="Handled automatically",
                    estimated_time_saved=format_time_saved(seconds),
                )
            )

        name = self.assistant_name
        label = domain.value.replace("_", " ")
        message = (
            f"You've approved all {streak} of {name}'s recent {label} actions. "
            f"Want {name} to handle routine {label} actions automatically?"
        )
        now = utcnow()
        return EscalationPrompt(
            domain=domain,
            current_tier=tier,
            proposed_tier=proposed,
            consecutive_approvals=streak,
            message=message,
            preview_examples=previews,
            estimated_time_saved=format_time_saved(seconds),
            estimated_time_saved_seconds=seconds,
            created_at=now,
            expires_at=now + self.prompt_ttl,
        )

    # =========================================================================
    # Responses
    # =========================================================================

    def accept(self, prompt_id: str) -> EscalationPrompt:
        """Accept a pending prompt: raise the domain one tier and reset the streak.

        Raises:
            EscalationPromptNotFoundError: Unknown, expired or already answered.
            ProtectedConfigLockedError: Tier changes are currently locked.
        """
        self.policy.guard.check()
        prompt = self._transition(prompt_id, EscalationStatus.ACCEPTED)

        current = self.policy.get_domain_tier(prompt.domain)
        if current == prompt.current_tier:
            self.policy.set_domain_tier(prompt.domain, prompt.proposed_tier)
        else:
            logger.warning(
                "Domain %s moved to %s since prompt %s was created; tier left unchanged",
                prompt.domain.value, current.value, prompt.id,
            )

        self.tracker.reset_streak(prompt.domain)
        logger.info("Escalation %s accepted for %s", prompt.id, prompt.domain.value)
        return prompt

    def dismiss(self, prompt_id: str) -> EscalationPrompt:
        """Dismiss a pending prompt: keep the tier, start the cooldown.

        Raises:
            EscalationPromptNotFoundError: Unknown, expired or already answered.
        """
        prompt = self._transition(
            prompt_id,
            EscalationStatus.DISMISSED,
            expires_at=utcnow() + self.cooldown,
        )
        self.tracker.reset_streak(prompt.domain)
        logger.info("Escalation %s dismissed for %s", prompt.id, prompt.domain.value)
        return prompt

    def _transition(self, prompt_id: str, status: EscalationStatus, **changes: Any) -> EscalationPrompt:
        self.expire_prompts()
        now = utcnow()
        values: dict[str, Any] = {"status": status.value, "responded_at": to_iso(now)}
        values.update({k: to_iso(v) for k, v in changes.items()})

        with self.database.transaction() as conn:
            result = conn.execute(
                update(escalation_prompts)
                .where(
                    escalation_prompts.c.id == prompt_id,
                    escalation_prompts.c.status == EscalationStatus.PENDING.value,
                )
                .values(**values)
            )
            if result.rowcount == 0:
                raise EscalationPromptNotFoundError(prompt_id)
            row = conn.execute(
                select(escalation_prompts).where(escalation_prompts.c.id == prompt_id)
            ).one()
        return self._row_to_prompt(row)

    # =========================================================================
    # Queries
    # =========================================================================

    def expire_prompts(self) -> int:
        """Lapse pending prompts whose expiry has passed."""
        now = to_iso(utcnow())
        with self.database.transaction() as conn:
            result = conn.execute(
                update(escalation_prompts)
                .where(
                    escalation_prompts.c.status == EscalationStatus.PENDING.value,
                    escalation_prompts.c.expires_at < now,
                )
                .values(status=EscalationStatus.EXPIRED.value)
            )
        if result.rowcount:
            logger.info("Expired %d escalation prompt(s)", result.rowcount)
        return result.rowcount

    def get_prompt(self, prompt_id: str) -> EscalationPrompt | None:
        with self.database.connect() as conn:
            row = conn.execute(
                select(escalation_prompts).where(escalation_prompts.c.id == prompt_id)
            ).first()
        return self._row_to_prompt(row) if row is not None else None

    def get_active_prompts(self) -> list[EscalationPrompt]:
        self.expire_prompts()
        with self.database.connect() as conn:
            rows = conn.execute(
                select(escalation_prompts)
                .where(escalation_prompts.c.status == EscalationStatus.PENDING.value)
                .order_by(escalation_prompts.c.created_at.desc())
            ).all()
        return [self._row_to_prompt(row) for row in rows]

    def get_all_prompts(self) -> list[EscalationPrompt]:
        with self.database.connect() as conn:
            rows = conn.execute(
                select(escalation_prompts).order_by(escalation_prompts.c.created_at.desc())
            ).all()
        return [self._row_to_prompt(row) for row in rows]

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _prompt_to_row(prompt: EscalationPrompt) -> dict[str, Any]:
        return {
            "id": prompt.id,
            "domain": prompt.domain.value,
            "current_tier": prompt.current_tier.value,
            "proposed_tier": prompt.proposed_tier.value,
            "consecutive_approvals": prompt.consecutive_approvals,
            "message": prompt.message,
            "preview_examples": [p.model_dump() for p in prompt.preview_examples],
            "estimated_time_saved": prompt.estimated_time_saved,
            "estimated_time_saved_seconds": prompt.estimated_time_saved_seconds,
            "created_at": to_iso(prompt.created_at),
            "expires_at": to_iso(prompt.expires_at),
            "status": prompt.status.value,
            "responded_at": to_iso(prompt.responded_at),
        }

    @staticmethod
    def _row_to_prompt(row: Any) -> EscalationPrompt:
        return EscalationPrompt(
            id=row.id,
            domain=Domain(row.domain),
            current_tier=AutonomyTier(row.current_tier),
            proposed_tier=AutonomyTier(row.proposed_tier),
            consecutive_approvals=row.consecutive_approvals,
            message=row.message,
            preview_examples=[PreviewExample(**p) for p in row.preview_examples or []],
            estimated_time_saved=row.estimated_time_saved,
            estimated_time_saved_seconds=row.estimated_time_saved_seconds,
            created_at=from_iso(row.created_at),
            expires_at=from_iso(row.expires_at),
            status=EscalationStatus(row.status),
            responded_at=from_iso(row.responded_at),
        )


__all__ = [
    "DEFAULT_ESCALATION_THRESHOLD",
    "EscalationEngine",
    "PREVIEW_DESCRIPTIONS",
    "format_time_saved",
    "preview_for_pattern",
]
