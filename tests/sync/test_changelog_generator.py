"""Changelog generation tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import commit_file
from wikisync.constants import CHANGELOG_DELIMITER
from wikisync.db.changelog import ChangelogEntry, ChangelogStore
from wikisync.db.repositories import RepositoryStore
from wikisync.repo import GitRepo
from wikisync.sync.changelog import (
    CHANGELOG_SCHEMA,
    ChangelogGenerator,
    ChangelogItem,
    render_commit_log,
)


@pytest.fixture
def repository(temp_db, stale_repository):
    repository_id, _, _ = stale_repository
    return RepositoryStore(temp_db).get(repository_id)


@pytest.fixture
def repo_path(stale_repository):
    return stale_repository[2]


@pytest.fixture
def invoker():
    mock = AsyncMock()
    mock.invoke.return_value = [
        ChangelogItem(date=datetime(2024, 5, 1, 9, 30), title="Docs", description="Added docs")
    ]
    return mock


def test_changelog_item_accepts_date_only():
    """A bare date parses as midnight."""
    (item,) = CHANGELOG_SCHEMA.validate_json(
        '[{"date": "2024-05-01", "title": "T", "description": null}]'
    )

    assert item.date == datetime(2024, 5, 1, 0, 0)
    assert item.description == ""


def test_changelog_item_accepts_prompt_format():
    """The date format requested in the prompt parses."""
    (item,) = CHANGELOG_SCHEMA.validate_json('[{"date": "2024-05-01 12:34:56", "title": "T"}]')

    assert item.date == datetime(2024, 5, 1, 12, 34, 56)


def test_render_commit_log(temp_git_repo):
    """Each commit lists committer, message and time."""
    (commit,) = GitRepo(temp_git_repo).list_commits()

    rendered = render_commit_log([commit])

    assert rendered.startswith("Committer: Test User\nCommit content\n<message>\n")
    assert "m0: initial commit</message>" in rendered
    assert f"Commit time: {commit.committed_at:%Y-%m-%d %H:%M:%S}" in rendered


async def test_generate_summarizes_all_commits_first_time(
    temp_db, repository, repo_path, invoker
):
    """Without prior entries every commit is summarized."""
    generator = ChangelogGenerator(ChangelogStore(temp_db), invoker, readme_max_chars=100)

    entries = await generator.generate(repository, repo_path)

    prompt = invoker.invoke.call_args.args[0]
    assert "https://example.com/test/repo" in prompt
    assert "https://example.com/test/repo.git" not in prompt
    assert "# Test Project" in prompt
    assert "m0: initial commit" in prompt
    assert invoker.invoke.call_args.kwargs["tag"] == CHANGELOG_DELIMITER

    (entry,) = entries
    assert entry.repository_id == repository.id
    assert entry.timestamp == datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    assert entry.title == "Docs"
    assert entry.author == ""


async def test_generate_does_not_persist(
    temp_db, repository, repo_path, invoker
):
    """Entries are returned for the caller to store."""
    store = ChangelogStore(temp_db)

    await ChangelogGenerator(store, invoker).generate(repository, repo_path)

    assert store.list_for_repository(repository.id) == []


async def test_generate_only_uses_commits_after_latest_entry(
    temp_db, repository, repo_path, invoker
):
    """Commits at or before the latest entry are not sent again."""
    store = ChangelogStore(temp_db)
    (root,) = GitRepo(repo_path).list_commits()
    store.add_many(
        [
            ChangelogEntry(
                id="old", repository_id=repository.id, timestamp=root.committed_at, title="Old"
            )
        ]
    )
    commit_file(repo_path, "b.md", "b", "m1: add b", date="2024-01-02T12:00:00+00:00")

    await ChangelogGenerator(store, invoker).generate(repository, repo_path)

    prompt = invoker.invoke.call_args.args[0]
    assert "m1: add b" in prompt
    assert "m0: initial commit" not in prompt


async def test_generate_without_new_commits_skips_analysis(
    temp_db, repository, repo_path, invoker
):
    """No newer commits means no analysis call and no entries."""
    store = ChangelogStore(temp_db)
    store.add_many(
        [
            ChangelogEntry(
                id="future",
                repository_id=repository.id,
                timestamp=datetime.now(timezone.utc) + timedelta(days=1),
                title="Future",
            )
        ]
    )

    entries = await ChangelogGenerator(store, invoker).generate(repository, repo_path)

    assert entries == []
    invoker.invoke.assert_not_awaited()
