"""Conversation history persistence."""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update

from packages.core.persistence import Database, conversation_turns, conversations, from_iso, to_iso
from packages.core.schemas.models import AgentAction, ConversationTurn, TokenUsage, new_id, utcnow

logger = logging.getLogger(__name__)


class ConversationStore:
    """Stores user and assistant turns per conversation."""

    def __init__(self, database: Database):
        self.database = database

    def create(self, title: str | None = None) -> str:
        conversation_id = new_id()
        now = to_iso(utcnow())
        with self.database.transaction() as conn:
            conn.execute(
                conversations.insert().values(id=conversation_id, created_at=now, updated_at=now, title=title)
            )
        return conversation_id

    def exists(self, conversation_id: str) -> bool:
        with self.database.connect() as conn:
            row = conn.execute(
                select(conversations.c.id).where(conversations.c.id == conversation_id)
            ).first()
        return row is not None

    def ensure(self, conversation_id: str | None) -> str:
        """Return a usable conversation id, creating the conversation if needed."""
        if conversation_id is None:
            return self.create()
        if not self.exists(conversation_id):
            now = to_iso(utcnow())
            with self.database.transaction() as conn:
                conn.execute(
                    conversations.insert().values(id=conversation_id, created_at=now, updated_at=now)
                )
        return conversation_id

    def add_turn(
        self,
        conversation_id: str,
        role: str,
        content: str,
        actions: list[AgentAction] | None = None,
        usage: TokenUsage | None = None,
    ) -> ConversationTurn:
        turn = ConversationTurn(
            conversation_id=conversation_id,
            role=role,
            content=content,
            actions=actions or [],
        )
        usage = usage or TokenUsage()
        with self.database.transaction() as conn:
            # Position is assigned inside the INSERT and is unique per conversation
            position = (
                select(func.coalesce(func.max(conversation_turns.c.position) + 1, 0))
                .where(conversation_turns.c.conversation_id == conversation_id)
                .scalar_subquery()
            )
            conn.execute(
                conversation_turns.insert().values(
                    id=turn.id,
                    conversation_id=conversation_id,
                    position=position,
                    role=role,
                    content=content,
                    timestamp=to_iso(turn.timestamp),
                    actions=[a.model_dump(mode="json") for a in turn.actions] or None,
                    tokens_prompt=usage.prompt,
                    tokens_completion=usage.completion,
                )
            )
            conn.execute(
                update(conversations)
                .where(conversations.c.id == conversation_id)
                .values(updated_at=to_iso(turn.timestamp))
            )
        return turn

    def get_turns(self, conversation_id: str, limit: int | None = None) -> list[ConversationTurn]:
        """Turns in chronological order; with ``limit``, only the most recent ones."""
        query = select(conversation_turns).where(conversation_turns.c.conversation_id == conversation_id)
        if limit is not None:
            query = query.order_by(conversation_turns.c.position.desc()).limit(limit)
        else:
            query = query.order_by(conversation_turns.c.position.asc())

        with self.database.connect() as conn:
            rows = conn.execute(query).all()
        if limit is not None:
            rows = list(reversed(rows))

        return [
            ConversationTurn(
                id=row.id,
                conversation_id=row.conversation_id,
                role=row.role,
                content=row.content,
                timestamp=from_iso(row.timestamp),
                actions=[AgentAction(**a) for a in row.actions or []],
            )
            for row in rows
        ]
