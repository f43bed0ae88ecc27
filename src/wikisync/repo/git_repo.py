"""Git repository wrapper using GitPython."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from git import Commit, Repo
from git.exc import BadName

logger = logging.getLogger(__name__)

README_NAMES = ("README.md", "README.rst", "README.txt", "README", "readme.md")


class ChangeKind(str, Enum):
    """How a path changed between a commit and its first parent."""

    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"
    RENAMED = "renamed"
    TYPE_CHANGED = "type_changed"


# GitPython diff change-type letters
_CHANGE_TYPES = {
    "A": ChangeKind.ADDED,
    "D": ChangeKind.DELETED,
    "M": ChangeKind.MODIFIED,
    "R": ChangeKind.RENAMED,
    "T": ChangeKind.TYPE_CHANGED,
}


@dataclass(frozen=True)
class FileChange:
    """One (change kind, path) pair."""

    kind: ChangeKind
    path: str


@dataclass
class CommitInfo:
    """A commit with the paths it touched."""

    sha: str
    message: str
    author_name: str
    committer_name: str
    committed_at: datetime
    changes: list[FileChange] = field(default_factory=list)


class GitRepo:
    """Wrapper for git repository operations."""

    def __init__(self, path: Path):
        """Initialize git repository wrapper.

        Args:
            path: Path to git repository root.
        """
        self.path = path
        self._repo = Repo(path)

    def get_head_commit(self) -> str:
        """Get current HEAD commit hash.

        Returns:
            Full commit SHA.
        """
        return self._repo.head.commit.hexsha

    def has_commit(self, sha: str) -> bool:
        """Check whether ``sha`` names a commit reachable from HEAD."""
        try:
            commit = self._repo.commit(sha)
        except (BadName, ValueError):
            return False
        return self._repo.is_ancestor(commit, self._repo.head.commit)

    def _to_info(self, commit: Commit) -> CommitInfo:
        parent = commit.parents[0] if commit.parents else None
        return CommitInfo(
            sha=commit.hexsha,
            message=str(commit.message).strip(),
            author_name=str(commit.author.name or ""),
            committer_name=str(commit.committer.name or ""),
            committed_at=commit.committed_datetime.astimezone(timezone.utc),
            changes=self.diff(parent.hexsha, commit.hexsha) if parent else [],
        )

    def list_commits(self) -> list[CommitInfo]:
        """List every commit reachable from HEAD, oldest first."""
        return [self._to_info(c) for c in reversed(list(self._repo.iter_commits("HEAD")))]

    def commits_since(self, marker: str | None) -> list[CommitInfo]:
        """List commits newer than ``marker``, oldest first.

        An empty marker, or one that is no longer part of HEAD's history,
        yields the full history.

        Args:
            marker: Last processed commit SHA.
        """
        if not marker:
            return self.list_commits()
        if not self.has_commit(marker):
            logger.warning(
                f"Commit {marker} is not in the history of {self.path}; using full history"
            )
            return self.list_commits()
        commits = list(self._repo.iter_commits(f"{marker}..HEAD"))
        return [self._to_info(c) for c in reversed(commits)]

    def commits_after(self, since: datetime | None) -> list[CommitInfo]:
        """List commits committed strictly after ``since``, oldest first.

        Naive datetimes are taken to be UTC.
        """
        commits = self.list_commits()
        if since is None:
            return commits
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        return [c for c in commits if c.committed_at > since]

    def diff(self, a: str, b: str) -> list[FileChange]:
        """List changed paths between two commits, sorted by path.

        Renames report the new path and deletions the old one.
        """
        changes = []
        for item in self._repo.commit(a).diff(self._repo.commit(b)):
            kind = _CHANGE_TYPES.get(item.change_type, ChangeKind.MODIFIED)
            path = item.a_path if kind is ChangeKind.DELETED else item.b_path
            changes.append(FileChange(kind=kind, path=str(path)))
        return sorted(changes, key=lambda c: (c.path, c.kind.value))

    def list_files(self) -> list[str]:
        """List all tracked files in repository.

        Returns:
            List of relative file paths.
        """
        return [
            str(item.path)
            for item in self._repo.head.commit.tree.traverse()
            if not isinstance(item, tuple) and hasattr(item, "type") and item.type == "blob"
        ]

    def read_readme(self, max_chars: int | None = None) -> str:
        """Read the README at the working-tree root, or "" if there is none."""
        for name in README_NAMES:
            readme = self.path / name
            if readme.is_file():
                text = readme.read_text(encoding="utf-8", errors="replace")
                return text[:max_chars] if max_chars else text
        return ""
