"""Audit data models.

Append-only action records with hash chaining for tamper-evident logging.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from packages.core.schemas.models import utcnow


class AuditEventType(str, Enum):
    """Types of auditable agent events."""

    ACTION_EXECUTED = "action_executed"
    ACTION_FAILED = "action_failed"
    ACTION_QUEUED = "action_queued"
    ACTION_APPROVED = "action_approved"
    ACTION_REJECTED = "action_rejected"
    AUTHORIZATION_REQUIRED = "authorization_required"


class AuditEntry(BaseModel):
    """One audited action event.

    Chain integrity:
    - ``record_hash`` is computed from the entry contents plus ``previous_hash``
    - ``previous_hash`` links to the prior entry in the same log
    - the first entry has an empty ``previous_hash``
    """

    entry_id: str = Field(default_factory=lambda: str(uuid4()))
    sequence_number: int = 0
    timestamp: datetime = Field(default_factory=utcnow)

    event_type: AuditEventType
    action_id: str | None = None
    action_type: str
    domain: str
    tier: str
    decision: str | None = None
    status: str

    # Payload content never leaves the core; only its digest is logged
    payload_hash: str = ""
    estimated_time_saved_seconds: int = 0
    details: dict[str, Any] = Field(default_factory=dict)

    previous_hash: str = ""
    record_hash: str = ""

    def to_hash_content(self) -> dict[str, Any]:
        """Deterministic field set used for the record hash."""
        return {
            "entry_id": self.entry_id,
            "sequence_number": self.sequence_number,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "action_id": self.action_id,
            "action_type": self.action_type,
            "domain": self.domain,
            "tier": self.tier,
            "decision": self.decision,
            "status": self.status,
            "payload_hash": self.payload_hash,
            "estimated_time_saved_seconds": self.estimated_time_saved_seconds,
            "details": self.details,
            "previous_hash": self.previous_hash,
        }

    def compute_hash(self) -> str:
        content = json.dumps(self.to_hash_content(), sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(content.encode("utf-8")).hexdigest()
