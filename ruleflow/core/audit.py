"""Bounded in-memory audit trail of matched rule executions."""

import threading
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.core import AuditEntry, Rule


class AuditLog:
    """Keeps the most recent ``max_entries`` matches, newest first."""

    def __init__(self, max_entries: int = 500):
        if max_entries < 1:
            raise ValueError("Audit log size must be at least 1")
        self._entries: deque = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def record(
        self,
        rule: Rule,
        ticket_id: str,
        changes: Dict[str, Any],
        event: Optional[str] = None,
        dry_run: bool = False,
    ) -> AuditEntry:
        entry = AuditEntry(
            id=str(uuid.uuid4()),
            rule_id=rule.id,
            rule_name=rule.name,
            ticket_id=ticket_id,
            event=event,
            changes=dict(changes),
            timestamp=datetime.utcnow(),
            dry_run=dry_run,
        )
        with self._lock:
            self._entries.appendleft(entry)
        return entry

    def entries(self, ticket_id: Optional[str] = None, limit: Optional[int] = None) -> List[AuditEntry]:
        """Newest-first snapshot, optionally filtered by ticket."""
        with self._lock:
            snapshot = list(self._entries)
        if ticket_id is not None:
            snapshot = [e for e in snapshot if e.ticket_id == ticket_id]
        if limit is not None:
            snapshot = snapshot[:limit]
        return snapshot

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
