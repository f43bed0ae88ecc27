"""Version-delta extraction: what changed since the last processed commit."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from wikisync.repo.git_operations import GitCredentials, pull_repo
from wikisync.repo.git_repo import ChangeKind, CommitInfo, GitRepo

logger = logging.getLogger(__name__)


@dataclass
class VersionDelta:
    """Commits newer than a revision marker, oldest first.

    An empty ``commits`` list means there is nothing new, which is distinct
    from a failure to compute the delta.
    """

    previous_version: str | None
    new_version: str
    commits: list[CommitInfo] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.commits)

    def changes_by_path(self) -> dict[str, list[ChangeKind]]:
        """Combine per-commit changes into path -> kinds in commit order."""
        combined: dict[str, list[ChangeKind]] = {}
        for commit in self.commits:
            for change in commit.changes:
                combined.setdefault(change.path, []).append(change.kind)
        return combined

    def render_commit_prompt(self) -> str:
        """Render each commit's message and changed paths for an analysis prompt."""
        blocks = []
        for commit in self.commits:
            lines = ["<commit>", commit.message]
            lines.extend(f" - {change.kind.value}: {change.path}" for change in commit.changes)
            lines.append("</commit>")
            blocks.append("\n".join(lines))
        return "\n".join(blocks)


class VersionDeltaExtractor:
    """Fetches a checkout and lists the commits since a marker."""

    def __init__(
        self,
        pull: Callable[..., None] | None = pull_repo,
        timeout: int = 120,
    ):
        """
        Args:
            pull: Function used to fetch from origin, or None to skip fetching.
            timeout: Fetch timeout in seconds.
        """
        self.pull = pull
        self.timeout = timeout

    def extract(
        self,
        repo_path: Path,
        marker: str | None,
        branch: str | None = None,
        credentials: GitCredentials | None = None,
    ) -> VersionDelta:
        """Pull latest changes and compute the delta since ``marker``.

        Raises:
            GitPullError: If fetching fails.
        """
        if self.pull is not None:
            logger.info(f"Pulling {repo_path} (branch {branch or 'default'})")
            self.pull(repo_path, branch=branch, credentials=credentials, timeout=self.timeout)

        repo = GitRepo(repo_path)
        commits = repo.commits_since(marker)
        delta = VersionDelta(
            previous_version=marker,
            new_version=repo.get_head_commit(),
            commits=commits,
        )
        logger.info(
            f"Found {len(commits)} new commit(s) in {repo_path} since {marker or 'the beginning'}"
        )
        return delta
