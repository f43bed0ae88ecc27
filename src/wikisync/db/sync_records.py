"""Sync attempt records.

Each record is created when a cycle starts and written exactly once more when
the cycle reaches a terminal state. Records are never deleted.
"""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from wikisync.db.connection import Database, format_timestamp, parse_timestamp, utc_now


class SyncStatus(str, Enum):
    """State of one synchronization attempt."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SyncStatus.IN_PROGRESS


class SyncTrigger(str, Enum):
    """What started a synchronization attempt."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


class SyncRecordError(Exception):
    """Raised on an invalid sync record transition."""

    pass


@dataclass
class SyncRecord:
    """One synchronization attempt for a repository."""

    id: str
    repository_id: str
    status: SyncStatus
    started_at: datetime
    trigger: SyncTrigger
    file_count: int = 0
    from_version: Optional[str] = None
    to_version: Optional[str] = None
    ended_at: Optional[datetime] = None
    error_message: Optional[str] = None


class SyncRecordStore:
    """SQLite-backed store for sync attempt records."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def _row_to_record(self, row: sqlite3.Row) -> SyncRecord:
        started_at = parse_timestamp(row["started_at"])
        assert started_at is not None
        return SyncRecord(
            id=row["id"],
            repository_id=row["repository_id"],
            status=SyncStatus(row["status"]),
            started_at=started_at,
            trigger=SyncTrigger(row["trigger"]),
            file_count=row["file_count"],
            from_version=row["from_version"],
            to_version=row["to_version"],
            ended_at=parse_timestamp(row["ended_at"]),
            error_message=row["error_message"],
        )

    def start(
        self,
        repository_id: str,
        from_version: Optional[str],
        file_count: int,
        trigger: SyncTrigger = SyncTrigger.AUTOMATIC,
    ) -> SyncRecord:
        """Create an in-progress record for a new attempt."""
        record = SyncRecord(
            id=uuid.uuid4().hex,
            repository_id=repository_id,
            status=SyncStatus.IN_PROGRESS,
            started_at=utc_now(),
            trigger=SyncTrigger(trigger),
            file_count=file_count,
            from_version=from_version,
        )
        self.db.execute(
            """
            INSERT INTO sync_records
                (id, repository_id, status, started_at, from_version, file_count, trigger)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.repository_id,
                record.status.value,
                format_timestamp(record.started_at),
                record.from_version,
                record.file_count,
                record.trigger.value,
            ),
        )
        self.db.commit()
        return record

    def finish(
        self,
        record: SyncRecord,
        status: SyncStatus,
        to_version: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> SyncRecord:
        """Move an in-progress record to a terminal state.

        Raises:
            SyncRecordError: If the record is already terminal or the target
                status is not terminal.
        """
        status = SyncStatus(status)
        if not status.is_terminal:
            raise SyncRecordError(f"Cannot finish sync record {record.id} as {status.value}")
        if record.status.is_terminal:
            raise SyncRecordError(
                f"Sync record {record.id} already finished as {record.status.value}"
            )

        ended_at = utc_now()
        to_version = to_version if status is SyncStatus.SUCCESS else None

        # The caller's record stays in progress unless the write lands
        self.db.execute(
            """
            UPDATE sync_records
            SET status = ?, ended_at = ?, to_version = ?, error_message = ?
            WHERE id = ? AND status = ?
            """,
            (
                status.value,
                format_timestamp(ended_at),
                to_version,
                error_message,
                record.id,
                SyncStatus.IN_PROGRESS.value,
            ),
        )
        self.db.commit()

        record.status = status
        record.ended_at = ended_at
        record.to_version = to_version
        record.error_message = error_message
        return record

    def get(self, record_id: str) -> Optional[SyncRecord]:
        """Get a record by ID."""
        row = self.db.execute("SELECT * FROM sync_records WHERE id = ?", (record_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def list_for_repository(self, repository_id: str, limit: int = 20) -> list[SyncRecord]:
        """List a repository's records, newest first."""
        cursor = self.db.execute(
            """
            SELECT * FROM sync_records
            WHERE repository_id = ?
            ORDER BY started_at DESC, rowid DESC
            LIMIT ?
            """,
            (repository_id, limit),
        )
        return [self._row_to_record(row) for row in cursor.fetchall()]

    def fail_in_progress(self, message: str) -> int:
        """Mark every in-progress record as failed.

        Used at startup: records left in progress by a previous process can no
        longer finish.

        Returns:
            Number of records updated.
        """
        cursor = self.db.execute(
            """
            UPDATE sync_records
            SET status = ?, ended_at = ?, error_message = ?
            WHERE status = ?
            """,
            (
                SyncStatus.FAILED.value,
                format_timestamp(utc_now()),
                message,
                SyncStatus.IN_PROGRESS.value,
            ),
        )
        self.db.commit()
        return cursor.rowcount
