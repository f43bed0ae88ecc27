"""Changelog entry persistence (append-only)."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from wikisync.db.connection import Database, format_timestamp, parse_timestamp, utc_now


@dataclass
class ChangelogEntry:
    """A dated, human-readable description of repository changes."""

    id: str
    repository_id: str
    timestamp: datetime
    title: str
    description: str = ""
    author: str = ""
    created_at: Optional[datetime] = None


class ChangelogStore:
    """SQLite-backed changelog store."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def _row_to_entry(self, row: sqlite3.Row) -> ChangelogEntry:
        timestamp = parse_timestamp(row["timestamp"])
        assert timestamp is not None
        return ChangelogEntry(
            id=row["id"],
            repository_id=row["repository_id"],
            timestamp=timestamp,
            title=row["title"],
            description=row["description"],
            author=row["author"],
            created_at=parse_timestamp(row["created_at"]),
        )

    def add_many(self, entries: list[ChangelogEntry]) -> None:
        """Append entries."""
        if not entries:
            return
        now = format_timestamp(utc_now())
        self.db.executemany(
            """
            INSERT INTO changelog_entries
                (id, repository_id, timestamp, title, description, author, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    e.id,
                    e.repository_id,
                    format_timestamp(e.timestamp),
                    e.title,
                    e.description,
                    e.author,
                    format_timestamp(e.created_at) if e.created_at else now,
                )
                for e in entries
            ],
        )
        self.db.commit()

    def latest_timestamp(self, repository_id: str) -> Optional[datetime]:
        """Timestamp of the most recent entry, or None if there are none."""
        row = self.db.execute(
            "SELECT MAX(timestamp) AS latest FROM changelog_entries WHERE repository_id = ?",
            (repository_id,),
        ).fetchone()
        return parse_timestamp(row["latest"]) if row else None

    def list_for_repository(self, repository_id: str) -> list[ChangelogEntry]:
        """List a repository's entries, newest first."""
        cursor = self.db.execute(
            """
            SELECT * FROM changelog_entries
            WHERE repository_id = ?
            ORDER BY timestamp DESC
            """,
            (repository_id,),
        )
        return [self._row_to_entry(row) for row in cursor.fetchall()]
