"""Repository and document persistence."""

from __future__ import annotations

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from wikisync.db.connection import Database, format_timestamp, parse_timestamp, utc_now


class RepositoryStatus(str, Enum):
    """Lifecycle of a tracked repository."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RepositoryRecord:
    """A tracked source repository."""

    id: str
    name: str
    address: str
    branch: str
    git_username: Optional[str] = None
    git_password: Optional[str] = None
    version: Optional[str] = None  # Last processed commit
    sync_enabled: bool = True
    status: RepositoryStatus = RepositoryStatus.PENDING
    created_at: Optional[datetime] = None


@dataclass
class DocumentRecord:
    """A documentation set generated from a repository checkout."""

    id: str
    repository_id: str
    git_path: str
    last_update: datetime
    created_at: Optional[datetime] = None


class RepositoryStore:
    """SQLite-backed store for repositories and their documents."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def add(
        self,
        name: str,
        address: str,
        branch: str = "main",
        git_username: Optional[str] = None,
        git_password: Optional[str] = None,
        version: Optional[str] = None,
        sync_enabled: bool = True,
        status: RepositoryStatus = RepositoryStatus.PENDING,
    ) -> str:
        """Register a repository. Returns its ID."""
        repository_id = uuid.uuid4().hex
        self.db.execute(
            """
            INSERT INTO repositories
                (id, name, address, branch, git_username, git_password,
                 version, sync_enabled, status, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                repository_id,
                name,
                address,
                branch,
                git_username,
                git_password,
                version,
                int(sync_enabled),
                RepositoryStatus(status).value,
                format_timestamp(utc_now()),
            ),
        )
        self.db.commit()
        return repository_id

    def _row_to_record(self, row: sqlite3.Row) -> RepositoryRecord:
        """Convert a database row to a RepositoryRecord."""
        return RepositoryRecord(
            id=row["id"],
            name=row["name"],
            address=row["address"],
            branch=row["branch"],
            git_username=row["git_username"],
            git_password=row["git_password"],
            version=row["version"],
            sync_enabled=bool(row["sync_enabled"]),
            status=RepositoryStatus(row["status"]),
            created_at=parse_timestamp(row["created_at"]),
        )

    def _row_to_document(self, row: sqlite3.Row) -> DocumentRecord:
        last_update = parse_timestamp(row["last_update"])
        assert last_update is not None
        return DocumentRecord(
            id=row["id"],
            repository_id=row["repository_id"],
            git_path=row["git_path"],
            last_update=last_update,
            created_at=parse_timestamp(row["created_at"]),
        )

    def get(self, repository_id: str) -> Optional[RepositoryRecord]:
        """Get a repository by ID. Returns None if not found."""
        row = self.db.execute(
            "SELECT * FROM repositories WHERE id = ?", (repository_id,)
        ).fetchone()
        return self._row_to_record(row) if row else None

    def list_all(self) -> list[RepositoryRecord]:
        """List all repositories ordered by registration time."""
        cursor = self.db.execute("SELECT * FROM repositories ORDER BY created_at")
        return [self._row_to_record(row) for row in cursor.fetchall()]

    def update(self, repository_id: str, **kwargs) -> None:
        """Update repository fields. Only updates fields that are provided."""
        allowed_fields = {
            "name",
            "address",
            "branch",
            "git_username",
            "git_password",
            "version",
            "sync_enabled",
            "status",
        }

        fields = {k: v for k, v in kwargs.items() if k in allowed_fields}
        if not fields:
            return

        if "status" in fields:
            fields["status"] = RepositoryStatus(fields["status"]).value
        if "sync_enabled" in fields:
            fields["sync_enabled"] = int(bool(fields["sync_enabled"]))

        set_clause = ", ".join(f"{k} = ?" for k in fields)
        values = list(fields.values()) + [repository_id]

        self.db.execute(f"UPDATE repositories SET {set_clause} WHERE id = ?", values)
        self.db.commit()

    def set_version(self, repository_id: str, version: str) -> None:
        """Advance the last processed commit."""
        self.update(repository_id, version=version)

    def next_stale_repository(self, cutoff: datetime) -> Optional[RepositoryRecord]:
        """Find one repository that is due for synchronization.

        A repository qualifies when it is completed, has sync enabled, and owns
        at least one document last updated before ``cutoff``. Repositories
        never attempted come first, then the least recently attempted, so a
        repository that keeps failing cannot starve the others.
        """
        row = self.db.execute(
            """
            SELECT r.* FROM repositories r
            LEFT JOIN (
                SELECT repository_id, MAX(started_at) AS last_attempt
                FROM sync_records
                GROUP BY repository_id
            ) a ON a.repository_id = r.id
            WHERE r.status = ?
              AND r.sync_enabled = 1
              AND EXISTS (
                  SELECT 1 FROM documents d
                  WHERE d.repository_id = r.id AND d.last_update < ?
              )
            ORDER BY a.last_attempt IS NOT NULL, a.last_attempt, r.created_at
            LIMIT 1
            """,
            (RepositoryStatus.COMPLETED.value, format_timestamp(cutoff)),
        ).fetchone()
        return self._row_to_record(row) if row else None

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def add_document(
        self,
        repository_id: str,
        git_path: str,
        last_update: Optional[datetime] = None,
    ) -> str:
        """Register a documentation set for a repository. Returns its ID."""
        document_id = uuid.uuid4().hex
        now = utc_now()
        self.db.execute(
            """
            INSERT INTO documents (id, repository_id, git_path, last_update, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                document_id,
                repository_id,
                git_path,
                format_timestamp(last_update or now),
                format_timestamp(now),
            ),
        )
        self.db.commit()
        return document_id

    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        """Get a document by ID. Returns None if not found."""
        row = self.db.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
        return self._row_to_document(row) if row else None

    def list_documents(self, repository_id: str) -> list[DocumentRecord]:
        """List all documents owned by a repository."""
        cursor = self.db.execute(
            "SELECT * FROM documents WHERE repository_id = ? ORDER BY created_at",
            (repository_id,),
        )
        return [self._row_to_document(row) for row in cursor.fetchall()]

    def stale_documents(self, repository_id: str, cutoff: datetime) -> list[DocumentRecord]:
        """List a repository's documents last updated before ``cutoff``."""
        cursor = self.db.execute(
            """
            SELECT * FROM documents
            WHERE repository_id = ? AND last_update < ?
            ORDER BY created_at
            """,
            (repository_id, format_timestamp(cutoff)),
        )
        return [self._row_to_document(row) for row in cursor.fetchall()]

    def touch_documents(self, repository_id: str, when: Optional[datetime] = None) -> int:
        """Set last_update on every document of a repository.

        Returns:
            Number of documents updated.
        """
        cursor = self.db.execute(
            "UPDATE documents SET last_update = ? WHERE repository_id = ?",
            (format_timestamp(when or utc_now()), repository_id),
        )
        self.db.commit()
        return cursor.rowcount
