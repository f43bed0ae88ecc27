"""Database layer for wikisync."""

from wikisync.db.access_log import AccessLogStore
from wikisync.db.catalog import CatalogNode, CatalogStore, CatalogTreeNode
from wikisync.db.changelog import ChangelogEntry, ChangelogStore
from wikisync.db.connection import Database
from wikisync.db.migrations import run_migrations
from wikisync.db.repositories import (
    DocumentRecord,
    RepositoryRecord,
    RepositoryStatus,
    RepositoryStore,
)
from wikisync.db.sync_records import (
    SyncRecord,
    SyncRecordError,
    SyncRecordStore,
    SyncStatus,
    SyncTrigger,
)

__all__ = [
    "AccessLogStore",
    "CatalogNode",
    "CatalogStore",
    "CatalogTreeNode",
    "ChangelogEntry",
    "ChangelogStore",
    "Database",
    "DocumentRecord",
    "RepositoryRecord",
    "RepositoryStatus",
    "RepositoryStore",
    "SyncRecord",
    "SyncRecordError",
    "SyncRecordStore",
    "SyncStatus",
    "SyncTrigger",
    "run_migrations",
]
