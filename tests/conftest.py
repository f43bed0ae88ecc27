"""Shared pytest fixtures for all tests.

These fixtures properly clean up resources to prevent file descriptor leaks.
"""

import gc
import os
import subprocess
from datetime import timedelta
from pathlib import Path

import pytest

from wikisync.db.connection import Database, utc_now
from wikisync.db.migrations import run_migrations
from wikisync.db.repositories import RepositoryStatus, RepositoryStore


@pytest.fixture(autouse=True)
def cleanup_after_test():
    """Force garbage collection after each test to release SQLite handles."""
    yield
    gc.collect()


@pytest.fixture
def temp_db(tmp_path):
    """Create a temporary migrated database that cleans up properly."""
    db = Database(tmp_path / "test.db")
    run_migrations(db)
    yield db
    db.close()
    gc.collect()


def git(repo_path: Path, *args: str, env: dict[str, str] | None = None) -> str:
    """Run a git command in ``repo_path`` and return its stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
        env={**os.environ, **env} if env else None,
    )
    return result.stdout.strip()


def commit_file(
    repo_path: Path, rel_path: str, content: str, message: str, date: str | None = None
) -> str:
    """Write a file, commit it and return the new HEAD SHA.

    ``date`` (ISO 8601) sets both author and committer dates.
    """
    file_path = repo_path / rel_path
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(content)
    git(repo_path, "add", rel_path)
    env = {"GIT_AUTHOR_DATE": date, "GIT_COMMITTER_DATE": date} if date else None
    git(repo_path, "commit", "-m", message, env=env)
    return git(repo_path, "rev-parse", "HEAD")


def init_repo(repo_path: Path) -> Path:
    """Initialize an empty git repository with a test identity."""
    repo_path.mkdir(parents=True, exist_ok=True)
    git(repo_path, "init", "-b", "main")
    git(repo_path, "config", "user.email", "test@test.com")
    git(repo_path, "config", "user.name", "Test User")
    return repo_path


@pytest.fixture
def temp_git_repo(tmp_path):
    """A git repository with a README committed as m0."""
    repo_path = init_repo(tmp_path / "source")
    commit_file(
        repo_path,
        "README.md",
        "# Test Project\n",
        "m0: initial commit",
        date="2024-01-01T12:00:00+00:00",
    )
    return repo_path


@pytest.fixture
def stale_repository(temp_db, temp_git_repo):
    """A completed repository with one document not updated for ten days.

    Returns:
        Tuple of (repository_id, document_id, repo_path).
    """
    store = RepositoryStore(temp_db)
    repository_id = store.add(
        name="Test Repo",
        address="https://example.com/test/repo.git",
        branch="main",
        version=git(temp_git_repo, "rev-parse", "HEAD"),
        status=RepositoryStatus.COMPLETED,
    )
    document_id = store.add_document(
        repository_id, str(temp_git_repo), last_update=utc_now() - timedelta(days=10)
    )
    return repository_id, document_id, temp_git_repo
