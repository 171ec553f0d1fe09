"""Append-only audit log with a fixed capacity."""

import json
from collections import deque
from typing import Optional

from ..models import AuditLogEntry

DEFAULT_MAX_ENTRIES = 10000


class AuditLogger:
    """Ring buffer of audit entries; the oldest entry is evicted first."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Initialize the audit logger.

        Args:
            max_entries: Capacity of the ring buffer
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: deque[AuditLogEntry] = deque(maxlen=max_entries)

    def log(self, **fields) -> AuditLogEntry:
        """Append an entry.

        Args:
            **fields: ``AuditLogEntry`` fields (snake_case or camelCase);
                the timestamp defaults to now

        Returns:
            The stored entry
        """
        entry = AuditLogEntry.model_validate(fields)
        self._entries.append(entry)
        return entry

    def get_logs(
        self,
        server: Optional[str] = None,
        action: Optional[str] = None,
        success: Optional[bool] = None,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AuditLogEntry]:
        """Query entries, most recent first.

        Args:
            server: Only entries for this server
            action: Only entries with this action
            success: Only entries with this outcome
            user_id: Only entries for this user
            limit: Maximum number of entries returned

        Returns:
            Matching entries
        """
        results: list[AuditLogEntry] = []
        if limit is not None and limit <= 0:
            return results
        for entry in reversed(self._entries):
            if server is not None and entry.server != server:
                continue
            if action is not None and entry.action != action:
                continue
            if success is not None and entry.success != success:
                continue
            if user_id is not None and entry.user_id != user_id:
                continue
            results.append(entry)
            if limit is not None and len(results) >= limit:
                break
        return results

    def export_logs(self) -> str:
        """Export all entries as a JSON array, most recent first."""
        return json.dumps(
            [entry.model_dump(mode="json", by_alias=True) for entry in reversed(self._entries)],
            indent=2,
        )

    def clear(self) -> None:
        """Drop all entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
