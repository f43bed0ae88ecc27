"""Changelog generation from raw commit history."""

import asyncio
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, TypeAdapter, field_validator

from wikisync.constants import CHANGELOG_DELIMITER, COMMIT_TIME_FORMAT
from wikisync.db.changelog import ChangelogEntry, ChangelogStore
from wikisync.db.repositories import RepositoryRecord
from wikisync.llm.invoker import AnalysisInvoker
from wikisync.repo.git_repo import CommitInfo, GitRepo
from wikisync.sync.analysis import repository_label
from wikisync.sync.prompts import SYSTEM_PROMPT, get_changelog_prompt

logger = logging.getLogger(__name__)

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ChangelogItem(BaseModel):
    """One changelog entry as returned by the model."""

    model_config = ConfigDict(extra="ignore")

    date: datetime
    title: str
    description: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def _date_only(cls, value):
        if isinstance(value, str) and _DATE_ONLY.match(value.strip()):
            return f"{value.strip()}T00:00:00"
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value


CHANGELOG_SCHEMA = TypeAdapter(list[ChangelogItem])


def render_commit_log(commits: list[CommitInfo]) -> str:
    """Render committer, message and time of each commit."""
    parts = []
    for commit in commits:
        parts.append(
            f"Committer: {commit.committer_name}\n"
            f"Commit content\n<message>\n{commit.message}</message>\n"
            f"Commit time: {commit.committed_at.strftime(COMMIT_TIME_FORMAT)}\n"
        )
    return "".join(parts)


class ChangelogGenerator:
    """Summarizes commits newer than the latest changelog entry."""

    def __init__(
        self,
        store: ChangelogStore,
        invoker: AnalysisInvoker,
        readme_max_chars: int = 4000,
    ):
        self.store = store
        self.invoker = invoker
        self.readme_max_chars = readme_max_chars

    async def generate(self, repository: RepositoryRecord, repo_path: Path) -> list[ChangelogEntry]:
        """Build changelog entries for commits since the last entry.

        Entries are returned, not persisted.

        Returns:
            New entries, or an empty list when there are no newer commits.
        """
        since = self.store.latest_timestamp(repository.id)
        repo = GitRepo(repo_path)
        commits = await asyncio.to_thread(repo.commits_after, since)
        if not commits:
            logger.info(f"No commits for the changelog of {repository.name} since {since}")
            return []

        readme = await asyncio.to_thread(repo.read_readme, self.readme_max_chars)
        prompt = get_changelog_prompt(
            git_repository=repository_label(repository.address),
            git_branch=repository.branch,
            readme=readme,
            commit_message=render_commit_log(commits),
        )
        items = await self.invoker.invoke(
            prompt, CHANGELOG_SCHEMA, tag=CHANGELOG_DELIMITER, system_prompt=SYSTEM_PROMPT
        )

        entries = []
        for item in items:
            timestamp = item.date
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            entries.append(
                ChangelogEntry(
                    id=uuid.uuid4().hex,
                    repository_id=repository.id,
                    timestamp=timestamp,
                    title=item.title,
                    description=item.description,
                    author="",
                )
            )
        logger.info(
            f"Generated {len(entries)} changelog entr{'y' if len(entries) == 1 else 'ies'} "
            f"from {len(commits)} commit(s) for {repository.name}"
        )
        return entries
