"""Audit sinks.

Provides the sink protocol the orchestrator records into and an
append-only JSONL implementation with hash chaining.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from packages.audit.models import AuditEntry, AuditEventType

logger = logging.getLogger(__name__)


@runtime_checkable
class AuditSink(Protocol):
    """Destination for audit entries. Implementations must be append-only."""

    async def record(self, entry: AuditEntry) -> None:
        ...


class JsonlAuditSink:
    """File-based audit sink.

    Stores entries in JSONL (JSON Lines) format, one entry per line, each
    chained to its predecessor by hash.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()
        self._last: AuditEntry | None = None
        self._loaded = False
        logger.info("JsonlAuditSink initialized at %s", self.path)

    def _load_last(self) -> AuditEntry | None:
        if not self.path.exists():
            return None
        last_line = None
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    last_line = line
        return AuditEntry.model_validate_json(last_line) if last_line else None

    async def record(self, entry: AuditEntry) -> None:
        """Chain and append an entry."""
        async with self._lock:
            if not self._loaded:
                self._last = self._load_last()
                self._loaded = True

            entry.sequence_number = (self._last.sequence_number + 1) if self._last else 1
            entry.previous_hash = self._last.record_hash if self._last else ""
            entry.record_hash = entry.compute_hash()

            with open(self.path, "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
            self._last = entry

        logger.debug("Audit %s: %s seq=%d", entry.event_type.value, entry.action_type, entry.sequence_number)

    def read_all(self, event_type: AuditEventType | None = None) -> list[AuditEntry]:
        if not self.path.exists():
            return []
        entries = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                entry = AuditEntry.model_validate_json(line)
                if event_type is None or entry.event_type == event_type:
                    entries.append(entry)
        return entries

    def verify_chain(self) -> tuple[bool, str | None]:
        """Walk the log and check every link.

        Returns:
            (True, None) if intact, else (False, description of first break)
        """
        previous_hash = ""
        for entry in self.read_all():
            if entry.previous_hash != previous_hash:
                return False, f"Broken link at sequence {entry.sequence_number}"
            if entry.compute_hash() != entry.record_hash:
                return False, f"Hash mismatch at sequence {entry.sequence_number}"
            previous_hash = entry.record_hash
        return True, None
