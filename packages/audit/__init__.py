"""Agent Audit Package.

Tamper-evident logging of every action the agent executes, queues or is
refused, with hash chaining and per-action time-saved estimates.

Usage:
    from packages.audit import AuditEntry, AuditEventType, JsonlAuditSink

    sink = JsonlAuditSink("data/audit/actions.jsonl")
    await sink.record(AuditEntry(
        event_type=AuditEventType.ACTION_EXECUTED,
        action_type="email.archive",
        domain="communication",
        tier="partner",
        status="executed",
    ))

    valid, error = sink.verify_chain()
"""

from packages.audit.models import AuditEntry, AuditEventType
from packages.audit.storage import AuditSink, JsonlAuditSink
from packages.audit.time_saved import (
    DEFAULT_TIME_SAVED_SECONDS,
    TIME_SAVED_DEFAULTS,
    get_default_time_saved,
)

__all__ = [
    "AuditEntry",
    "AuditEventType",
    "AuditSink",
    "DEFAULT_TIME_SAVED_SECONDS",
    "JsonlAuditSink",
    "TIME_SAVED_DEFAULTS",
    "get_default_time_saved",
]
