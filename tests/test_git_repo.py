"""Git repository wrapper tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from conftest import commit_file, git
from wikisync.repo import ChangeKind, FileChange, GitRepo


def test_git_repo_gets_head_commit(temp_git_repo: Path):
    """Can get HEAD commit hash."""
    repo = GitRepo(temp_git_repo)

    commit_hash = repo.get_head_commit()

    assert len(commit_hash) == 40  # Full SHA


def test_git_repo_lists_files(temp_git_repo: Path):
    """Can list tracked files in repository."""
    commit_file(temp_git_repo, "src/main.py", "def main(): pass", "m1: add main")

    files = GitRepo(temp_git_repo).list_files()

    assert sorted(files) == ["README.md", "src/main.py"]


def test_has_commit(temp_git_repo: Path):
    """Known SHAs are found; garbage and unknown SHAs are not."""
    repo = GitRepo(temp_git_repo)

    assert repo.has_commit(repo.get_head_commit())
    assert not repo.has_commit("not-a-sha")
    assert not repo.has_commit("0" * 40)


def test_commits_since_marker(temp_git_repo: Path):
    """Only commits after the marker are returned, oldest first."""
    repo = GitRepo(temp_git_repo)
    m0 = repo.get_head_commit()
    m1 = commit_file(temp_git_repo, "a.md", "a", "m1: add a")
    m2 = commit_file(temp_git_repo, "a.md", "a2", "m2: edit a")

    commits = repo.commits_since(m0)

    assert [c.sha for c in commits] == [m1, m2]
    assert commits[0].message == "m1: add a"
    assert commits[0].changes == [FileChange(ChangeKind.ADDED, "a.md")]
    assert commits[1].changes == [FileChange(ChangeKind.MODIFIED, "a.md")]


def test_commits_since_head_is_empty(temp_git_repo: Path):
    """A marker at HEAD means nothing new."""
    repo = GitRepo(temp_git_repo)

    assert repo.commits_since(repo.get_head_commit()) == []


def test_commits_since_unknown_marker_uses_full_history(temp_git_repo: Path):
    """An empty or unknown marker yields every commit."""
    commit_file(temp_git_repo, "a.md", "a", "m1: add a")
    repo = GitRepo(temp_git_repo)

    assert len(repo.commits_since(None)) == 2
    assert len(repo.commits_since("f" * 40)) == 2


def test_root_commit_has_no_changes(temp_git_repo: Path):
    """The root commit has no parent to diff against."""
    (root,) = GitRepo(temp_git_repo).list_commits()

    assert root.changes == []
    assert root.committer_name == "Test User"
    assert root.committed_at.tzinfo is not None


def test_diff_reports_deletions_by_old_path(temp_git_repo: Path):
    """Deleted paths are reported with their old name."""
    repo = GitRepo(temp_git_repo)
    before = commit_file(temp_git_repo, "gone.md", "x", "add gone")
    git(temp_git_repo, "rm", "gone.md")
    git(temp_git_repo, "commit", "-m", "remove gone")

    changes = repo.diff(before, repo.get_head_commit())

    assert changes == [FileChange(ChangeKind.DELETED, "gone.md")]


def test_commits_after_filters_by_time(temp_git_repo: Path):
    """commits_after keeps commits strictly newer than the timestamp."""
    repo = GitRepo(temp_git_repo)
    (root,) = repo.list_commits()

    assert repo.commits_after(root.committed_at) == []
    assert len(repo.commits_after(root.committed_at - timedelta(seconds=1))) == 1
    assert len(repo.commits_after(None)) == 1


def test_commits_after_treats_naive_as_utc(temp_git_repo: Path):
    """A naive timestamp is compared as UTC."""
    repo = GitRepo(temp_git_repo)
    future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1)

    assert repo.commits_after(future) == []


def test_read_readme(temp_git_repo: Path, tmp_path: Path):
    """README contents are read and truncated; a missing README reads as empty."""
    repo = GitRepo(temp_git_repo)

    assert repo.read_readme() == "# Test Project\n"
    assert repo.read_readme(max_chars=6) == "# Test"

    (temp_git_repo / "README.md").unlink()
    assert repo.read_readme() == ""
