"""Human-in-the-loop queue for actions awaiting approval."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select, update

from packages.core.persistence import Database, from_iso, pending_actions, to_iso
from packages.core.schemas.models import (
    DispatchResult,
    PendingAction,
    PendingActionStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (PendingActionStatus.APPROVED, PendingActionStatus.REJECTED)


class PendingActionQueue:
    """Durable queue of PendingActions.

    A row leaves ``pending_approval`` exactly once: transitions are a
    conditional UPDATE and only the caller whose UPDATE matched a row wins.
    """

    def __init__(self, database: Database):
        self.database = database

    def enqueue(self, action: PendingAction) -> PendingAction:
        with self.database.transaction() as conn:
            conn.execute(
                pending_actions.insert().values(
                    id=action.id,
                    action_type=action.action_type,
                    payload=action.payload,
                    domain=action.domain.value,
                    tier=action.tier.value,
                    reasoning=action.reasoning,
                    status=action.status.value,
                    created_at=to_iso(action.created_at),
                )
            )
        logger.info("Queued %s for approval (%s)", action.action_type, action.id)
        return action

    def get(self, action_id: str) -> PendingAction | None:
        with self.database.connect() as conn:
            row = conn.execute(select(pending_actions).where(pending_actions.c.id == action_id)).first()
        return self._row_to_action(row) if row is not None else None

    def list_pending(self) -> list[PendingAction]:
        """Actions still awaiting a decision, oldest first."""
        with self.database.connect() as conn:
            rows = conn.execute(
                select(pending_actions)
                .where(pending_actions.c.status == PendingActionStatus.PENDING_APPROVAL.value)
                .order_by(pending_actions.c.created_at.asc())
            ).all()
        return [self._row_to_action(row) for row in rows]

    def list_history(self, limit: int = 50) -> list[PendingAction]:
        """Resolved actions, most recent first."""
        with self.database.connect() as conn:
            rows = conn.execute(
                select(pending_actions)
                .where(pending_actions.c.status.in_([s.value for s in TERMINAL_STATUSES]))
                .order_by(pending_actions.c.resolved_at.desc())
                .limit(limit)
            ).all()
        return [self._row_to_action(row) for row in rows]

    def claim(self, action_id: str, status: PendingActionStatus) -> PendingAction | None:
        """Move a pending action to a terminal status.

        Returns the transitioned action, or None if the id is unknown or
        another caller already resolved it.
        """
        if status not in TERMINAL_STATUSES:
            raise ValueError(f"Cannot claim action into status {status.value}")

        with self.database.transaction() as conn:
            result = conn.execute(
                update(pending_actions)
                .where(
                    pending_actions.c.id == action_id,
                    pending_actions.c.status == PendingActionStatus.PENDING_APPROVAL.value,
                )
                .values(status=status.value, resolved_at=to_iso(utcnow()))
            )
            if result.rowcount == 0:
                return None
            row = conn.execute(select(pending_actions).where(pending_actions.c.id == action_id)).one()

        logger.info("Action %s %s", action_id, status.value)
        return self._row_to_action(row)

    def record_result(self, action_id: str, result: DispatchResult) -> None:
        with self.database.transaction() as conn:
            conn.execute(
                update(pending_actions)
                .where(pending_actions.c.id == action_id)
                .values(result=result.model_dump(mode="json"))
            )

    @staticmethod
    def _row_to_action(row: Any) -> PendingAction:
        return PendingAction(
            id=row.id,
            action_type=row.action_type,
            payload=row.payload or {},
            domain=row.domain,
            tier=row.tier,
            reasoning=row.reasoning or "",
            status=PendingActionStatus(row.status),
            created_at=from_iso(row.created_at),
            resolved_at=from_iso(row.resolved_at),
            result=DispatchResult(**row.result) if row.result else None,
        )


__all__ = ["PendingActionQueue"]
