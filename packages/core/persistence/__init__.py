"""Transactional persistence for policy, queue and trust state.

Provides:
- SQLAlchemy Core table definitions shared by every component
- A Database handle with transaction scopes
- Atomic counter upserts (no read-modify-write in Python)
- ISO-8601 timestamp helpers
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from sqlalchemy import (
    Column,
    ForeignKey,
    Index,
    Integer,
    JSON,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    and_,
    create_engine,
    insert,
    update,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

metadata = MetaData()

# =============================================================================
# Tables
# =============================================================================

policy_settings = Table(
    "policy_settings",
    metadata,
    Column("key", String(64), primary_key=True),
    Column("value", String(255), nullable=False),
)

domain_tiers = Table(
    "domain_tiers",
    metadata,
    Column("domain", String(32), primary_key=True),
    Column("tier", String(16), nullable=False),
    Column("updated_at", String(40), nullable=False),
)

pending_actions = Table(
    "pending_actions",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("action_type", String(64), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("domain", String(32), nullable=False),
    Column("tier", String(16), nullable=False),
    Column("reasoning", Text, nullable=False, default=""),
    Column("status", String(24), nullable=False, default="pending_approval"),
    Column("created_at", String(40), nullable=False),
    Column("resolved_at", String(40)),
    Column("result", JSON),
    Index("idx_pending_actions_status", "status"),
)

domain_trust = Table(
    "domain_trust",
    metadata,
    Column("domain", String(32), primary_key=True),
    Column("consecutive_approvals", Integer, nullable=False, default=0),
    Column("total_approvals", Integer, nullable=False, default=0),
    Column("total_rejections", Integer, nullable=False, default=0),
    Column("last_approval_at", String(40)),
    Column("last_rejection_at", String(40)),
)

approval_patterns = Table(
    "approval_patterns",
    metadata,
    Column("action_type", String(64), primary_key=True),
    Column("fingerprint", String(128), primary_key=True),
    Column("approval_count", Integer, nullable=False, default=0),
    Column("rejection_count", Integer, nullable=False, default=0),
    Column("threshold", Integer),
    Column("last_approval_at", String(40)),
    Column("last_rejection_at", String(40)),
)

escalation_prompts = Table(
    "escalation_prompts",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("domain", String(32), nullable=False),
    Column("current_tier", String(16), nullable=False),
    Column("proposed_tier", String(16), nullable=False),
    Column("consecutive_approvals", Integer, nullable=False, default=0),
    Column("message", Text, nullable=False),
    Column("preview_examples", JSON, nullable=False),
    Column("estimated_time_saved", String(32), nullable=False),
    Column("estimated_time_saved_seconds", Integer, nullable=False, default=0),
    Column("created_at", String(40), nullable=False),
    Column("expires_at", String(40), nullable=False),
    Column("status", String(16), nullable=False, default="pending"),
    Column("responded_at", String(40)),
    Index("idx_escalation_prompts_domain_status", "domain", "status"),
)

conversations = Table(
    "conversations",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
    Column("title", String(255)),
)

conversation_turns = Table(
    "conversation_turns",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("conversation_id", String(64), ForeignKey("conversations.id"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("role", String(16), nullable=False),
    Column("content", Text, nullable=False),
    Column("timestamp", String(40), nullable=False),
    Column("actions", JSON),
    Column("tokens_prompt", Integer, nullable=False, default=0),
    Column("tokens_completion", Integer, nullable=False, default=0),
    Index("idx_conversation_turns_conversation", "conversation_id"),
    UniqueConstraint("conversation_id", "position", name="uq_conversation_turns_position"),
)


# =============================================================================
# Timestamps
# =============================================================================


def to_iso(value: datetime | None) -> str | None:
    """Serialize a datetime as UTC ISO-8601 so stored values sort lexically."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


# =============================================================================
# Database handle
# =============================================================================


class Database:
    """Transactional handle over a SQLAlchemy engine."""

    def __init__(self, url: str = "sqlite://", echo: bool = False, engine: Engine | None = None):
        self.url = url
        self.engine = engine or self._create_engine(url, echo)

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        parsed = make_url(url)
        kwargs: dict[str, Any] = {"echo": echo}

        if parsed.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if not parsed.database or parsed.database == ":memory:":
                # One shared connection, otherwise every checkout sees an empty database
                kwargs["poolclass"] = StaticPool
            else:
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

        return create_engine(url, **kwargs)

    def create_all(self) -> None:
        """Create any missing tables."""
        metadata.create_all(self.engine)
        logger.debug("Schema ensured on %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def transaction(self) -> Generator[Connection, None, None]:
        """Open a transaction that commits on success and rolls back on error."""
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def connect(self) -> Generator[Connection, None, None]:
        """Open a read connection."""
        with self.engine.connect() as conn:
            yield conn

    def dispose(self) -> None:
        self.engine.dispose()


def upsert(
    conn: Connection,
    table: Table,
    keys: dict[str, Any],
    increments: dict[str, int] | None = None,
    values: dict[str, Any] | None = None,
) -> None:
    """Atomically update a row by key, creating it if absent.

    ``increments`` are applied as ``col = col + n`` inside the database;
    ``values`` are assigned as-is. A missing row is inserted with the
    increments as initial counts.
    """
    increments = increments or {}
    values = values or {}
    row = {**keys, **increments, **values}
    set_ = {col: table.c[col] + amount for col, amount in increments.items()}
    set_.update(values)

    dialect = conn.dialect.name
    if dialect in ("sqlite", "postgresql"):
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        else:
            from sqlalchemy.dialects.postgresql import insert as dialect_insert

        stmt = dialect_insert(table).values(**row)
        stmt = stmt.on_conflict_do_update(index_elements=list(keys), set_=set_)
        conn.execute(stmt)
        return

    where = and_(*[table.c[k] == v for k, v in keys.items()])
    result = conn.execute(update(table).where(where).values(**set_))
    if result.rowcount == 0:
        conn.execute(insert(table).values(**row))


def create_database(url: str, echo: bool = False) -> Database:
    """Create a Database handle and ensure its schema exists."""
    database = Database(url, echo=echo)
    database.create_all()
    return database


__all__ = [
    "Database",
    "approval_patterns",
    "conversation_turns",
    "conversations",
    "create_database",
    "domain_tiers",
    "domain_trust",
    "escalation_prompts",
    "from_iso",
    "metadata",
    "pending_actions",
    "policy_settings",
    "to_iso",
    "upsert",
]
