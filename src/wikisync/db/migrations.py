"""Database migrations and schema management for wikisync."""

from wikisync.db.connection import Database

# Schema version for tracking migrations
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Tracked source repositories
CREATE TABLE IF NOT EXISTS repositories (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    address TEXT NOT NULL,
    branch TEXT NOT NULL DEFAULT 'main',
    git_username TEXT,
    git_password TEXT,
    version TEXT,  -- Last processed commit
    sync_enabled INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL DEFAULT 'pending',  -- 'pending', 'processing', 'completed', 'failed'
    created_at TEXT NOT NULL
);

-- Documentation sets generated for a repository
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL REFERENCES repositories(id),
    git_path TEXT NOT NULL,  -- Local checkout the documentation was generated from
    last_update TEXT NOT NULL,
    created_at TEXT NOT NULL
);

-- Catalog (table of contents) nodes, linked by parent pointer
CREATE TABLE IF NOT EXISTS catalog_nodes (
    id TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL REFERENCES repositories(id),
    document_id TEXT NOT NULL REFERENCES documents(id),
    parent_id TEXT,
    name TEXT NOT NULL,
    slug TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    prompt TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    replaces_id TEXT,  -- Node superseded by this one on update
    is_deleted INTEGER NOT NULL DEFAULT 0,
    deleted_at TEXT,
    created_at TEXT NOT NULL
);

-- One row per synchronization attempt; terminal once finished
CREATE TABLE IF NOT EXISTS sync_records (
    id TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL REFERENCES repositories(id),
    status TEXT NOT NULL,  -- 'in_progress', 'success', 'failed'
    started_at TEXT NOT NULL,
    ended_at TEXT,
    from_version TEXT,
    to_version TEXT,
    file_count INTEGER NOT NULL DEFAULT 0,
    trigger TEXT NOT NULL,  -- 'automatic', 'manual'
    error_message TEXT
);

-- Human-readable change history (append-only)
CREATE TABLE IF NOT EXISTS changelog_entries (
    id TEXT PRIMARY KEY,
    repository_id TEXT NOT NULL REFERENCES repositories(id),
    timestamp TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    author TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
);

-- Persisted request access log
CREATE TABLE IF NOT EXISTS access_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    resource_type TEXT,
    resource_id TEXT,
    user_id TEXT,
    ip_address TEXT,
    user_agent TEXT,
    path TEXT NOT NULL,
    method TEXT NOT NULL,
    status_code INTEGER NOT NULL,
    response_time_ms INTEGER NOT NULL,
    accessed_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_repositories_status ON repositories(status);
CREATE INDEX IF NOT EXISTS idx_documents_repository ON documents(repository_id);
CREATE INDEX IF NOT EXISTS idx_catalog_nodes_repository ON catalog_nodes(repository_id, is_deleted);
CREATE INDEX IF NOT EXISTS idx_catalog_nodes_parent ON catalog_nodes(parent_id);
CREATE INDEX IF NOT EXISTS idx_sync_records_repository ON sync_records(repository_id);
CREATE INDEX IF NOT EXISTS idx_sync_records_status ON sync_records(status);
CREATE INDEX IF NOT EXISTS idx_changelog_repository ON changelog_entries(repository_id, timestamp);
"""


def run_migrations(db: Database) -> None:
    """Run database migrations to set up or upgrade schema.

    Args:
        db: Database connection to run migrations on.
    """
    try:
        result = db.execute(
            "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
        ).fetchone()
        current_version = result[0] if result else 0
    except Exception:
        # Table doesn't exist yet
        current_version = 0

    if current_version < SCHEMA_VERSION:
        # executescript auto-commits, so the version insert is handled separately
        db.executescript(SCHEMA_SQL)
        db.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        db.commit()
