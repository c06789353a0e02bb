"""Approval and trust tracking.

Records every human decision on a queued action:
- a per-domain consecutive-approval streak (drives tier escalation)
- a per-pattern approval count (surfaced to the user, never drives decisions)

All counters are incremented inside the database, never read-then-written.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any

from sqlalchemy import select, update

from packages.core.autonomy import AutonomyPolicy
from packages.core.persistence import (
    Database,
    approval_patterns,
    domain_trust,
    from_iso,
    to_iso,
    upsert,
)
from packages.core.schemas.models import ApprovalPattern, Domain, DomainTrust, utcnow

logger = logging.getLogger(__name__)

DEFAULT_APPROVAL_THRESHOLD = 3


# =============================================================================
# Pattern fingerprints
# =============================================================================


def _addresses(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return sorted({str(v).strip().lower() for v in value if str(v).strip()})


def _request_kind(action_type: str, payload: dict[str, Any]) -> str:
    """Coarse label for the kind of request, used in escalation previews."""
    is_reply = bool(payload.get("reply_to_message_id"))
    if action_type == "email.send":
        return "reply" if is_reply else "new"
    if action_type == "email.draft":
        return "reply_draft" if is_reply else "new_draft"
    if action_type == "email.archive":
        return "archive"
    if action_type == "email.move":
        return f"move_to_{payload.get('to_folder') or 'unknown'}"
    if action_type == "email.markRead":
        return "mark_read" if payload.get("read") else "mark_unread"
    if action_type == "calendar.create":
        return "create_event"
    if action_type == "calendar.update":
        return "update_event"
    if action_type == "calendar.delete":
        return "delete_event"
    if action_type == "messaging.send":
        return "send_message"
    if action_type == "messaging.draft":
        return "draft_message"
    return "default"


def _identifying_fields(action_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    """Payload fields that make two requests 'the same kind of request'."""
    if action_type in ("email.send", "email.draft"):
        return {"to": _addresses(payload.get("to"))}
    if action_type in ("calendar.create", "calendar.update"):
        return {"attendees": _addresses(payload.get("attendees"))}
    if action_type in ("messaging.send", "messaging.draft"):
        recipient = payload.get("phone") or payload.get("recipient_name")
        return {"recipient": _addresses(recipient)}
    return {}


def pattern_fingerprint(action_type: str, payload: dict[str, Any] | None) -> str:
    """Canonical key for an (action, payload) pair.

    The result is ``kind`` alone, or ``kind:digest`` where the digest is a
    SHA-256 prefix over the sorted identifying fields (recipients, attendees).
    """
    payload = payload or {}
    kind = _request_kind(action_type, payload)
    fields = {k: v for k, v in _identifying_fields(action_type, payload).items() if v}
    if not fields:
        return kind
    canonical = json.dumps(fields, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
    return f"{kind}:{digest}"


# =============================================================================
# Tracker
# =============================================================================


class ApprovalTracker:
    """Persists approval/rejection history per domain and per pattern."""

    def __init__(self, database: Database, default_threshold: int = DEFAULT_APPROVAL_THRESHOLD):
        self.database = database
        self.default_threshold = default_threshold

    def record_approval(self, action_type: str, payload: dict[str, Any] | None = None) -> None:
        """Bump the domain streak, domain total and pattern count by one."""
        domain = AutonomyPolicy.domain_for_action(action_type)
        fingerprint = pattern_fingerprint(action_type, payload)
        now = to_iso(utcnow())

        with self.database.transaction() as conn:
            upsert(
                conn,
                domain_trust,
                keys={"domain": domain.value},
                increments={"consecutive_approvals": 1, "total_approvals": 1},
                values={"last_approval_at": now},
            )
            upsert(
                conn,
                approval_patterns,
                keys={"action_type": action_type, "fingerprint": fingerprint},
                increments={"approval_count": 1},
                values={"last_approval_at": now},
            )
        logger.debug("Recorded approval: %s [%s] in %s", action_type, fingerprint, domain.value)

    def record_rejection(self, action_type: str, payload: dict[str, Any] | None = None) -> None:
        """Reset the domain streak; the pattern approval count is kept."""
        domain = AutonomyPolicy.domain_for_action(action_type)
        fingerprint = pattern_fingerprint(action_type, payload)
        now = to_iso(utcnow())

        with self.database.transaction() as conn:
            upsert(
                conn,
                domain_trust,
                keys={"domain": domain.value},
                increments={"total_rejections": 1},
                values={"consecutive_approvals": 0, "last_rejection_at": now},
            )
            upsert(
                conn,
                approval_patterns,
                keys={"action_type": action_type, "fingerprint": fingerprint},
                increments={"rejection_count": 1},
                values={"last_rejection_at": now},
            )
        logger.debug("Recorded rejection: %s [%s] in %s", action_type, fingerprint, domain.value)

    def reset_streak(self, domain: Domain) -> None:
        with self.database.transaction() as conn:
            conn.execute(
                update(domain_trust)
                .where(domain_trust.c.domain == Domain(domain).value)
                .values(consecutive_approvals=0)
            )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_domain_trust(self, domain: Domain) -> DomainTrust:
        domain = Domain(domain)
        with self.database.connect() as conn:
            row = conn.execute(
                select(domain_trust).where(domain_trust.c.domain == domain.value)
            ).first()
        if row is None:
            return DomainTrust(domain=domain)
        return DomainTrust(
            domain=domain,
            consecutive_approvals=row.consecutive_approvals,
            total_approvals=row.total_approvals,
            total_rejections=row.total_rejections,
            last_approval_at=from_iso(row.last_approval_at),
            last_rejection_at=from_iso(row.last_rejection_at),
        )

    def get_streak(self, domain: Domain) -> int:
        return self.get_domain_trust(domain).consecutive_approvals

    def get_pattern(self, action_type: str, payload: dict[str, Any] | None = None) -> ApprovalPattern | None:
        fingerprint = pattern_fingerprint(action_type, payload)
        with self.database.connect() as conn:
            row = conn.execute(
                select(approval_patterns).where(
                    approval_patterns.c.action_type == action_type,
                    approval_patterns.c.fingerprint == fingerprint,
                )
            ).first()
        return self._row_to_pattern(row) if row is not None else None

    def get_approval_count(self, action_type: str, payload: dict[str, Any] | None = None) -> int:
        pattern = self.get_pattern(action_type, payload)
        return pattern.approval_count if pattern else 0

    def get_approval_threshold(self, action_type: str, payload: dict[str, Any] | None = None) -> int:
        pattern = self.get_pattern(action_type, payload)
        return pattern.threshold if pattern else self.default_threshold

    def set_approval_threshold(
        self,
        action_type: str,
        payload: dict[str, Any] | None,
        threshold: int,
    ) -> None:
        if threshold < 1:
            raise ValueError("Approval threshold must be at least 1")
        fingerprint = pattern_fingerprint(action_type, payload)
        with self.database.transaction() as conn:
            upsert(
                conn,
                approval_patterns,
                keys={"action_type": action_type, "fingerprint": fingerprint},
                values={"threshold": threshold},
            )
        logger.info("Approval threshold for %s [%s] set to %d", action_type, fingerprint, threshold)

    def get_patterns(self, domain: Domain | None = None) -> list[ApprovalPattern]:
        """All tracked patterns, optionally limited to one domain."""
        with self.database.connect() as conn:
            rows = conn.execute(
                select(approval_patterns).order_by(
                    approval_patterns.c.action_type, approval_patterns.c.fingerprint
                )
            ).all()
        patterns = [self._row_to_pattern(row) for row in rows]
        if domain is not None:
            domain = Domain(domain)
            patterns = [p for p in patterns if AutonomyPolicy.domain_for_action(p.action_type) == domain]
        return patterns

    def _row_to_pattern(self, row: Any) -> ApprovalPattern:
        return ApprovalPattern(
            action_type=row.action_type,
            fingerprint=row.fingerprint,
            approval_count=row.approval_count,
            rejection_count=row.rejection_count,
            threshold=row.threshold if row.threshold is not None else self.default_threshold,
            last_approval_at=from_iso(row.last_approval_at),
            last_rejection_at=from_iso(row.last_rejection_at),
        )


__all__ = [
    "ApprovalTracker",
    "DEFAULT_APPROVAL_THRESHOLD",
    "pattern_fingerprint",
]
