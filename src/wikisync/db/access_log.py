"""Access log persistence."""

from __future__ import annotations

from typing import TYPE_CHECKING

from wikisync.db.connection import Database, format_timestamp

if TYPE_CHECKING:
    from wikisync.sync.access_log import AccessLogEvent


class AccessLogStore:
    """Writes drained access-log events to SQLite."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def record(self, event: AccessLogEvent) -> None:
        """Persist one access-log event."""
        self.db.execute(
            """
            INSERT INTO access_logs
                (resource_type, resource_id, user_id, ip_address, user_agent,
                 path, method, status_code, response_time_ms, accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.resource_type,
                event.resource_id,
                event.user_id,
                event.ip_address,
                event.user_agent,
                event.path,
                event.method,
                event.status_code,
                event.response_time_ms,
                format_timestamp(event.accessed_at),
            ),
        )
        self.db.commit()

    def count(self) -> int:
        """Number of persisted events."""
        row = self.db.execute("SELECT COUNT(*) FROM access_logs").fetchone()
        return int(row[0])
