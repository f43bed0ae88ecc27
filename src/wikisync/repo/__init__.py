"""Repository access: fetching, history and file listing."""

from wikisync.repo.delta import VersionDelta, VersionDeltaExtractor
from wikisync.repo.file_filter import FileFilter, build_file_tree
from wikisync.repo.git_operations import (
    GitCredentials,
    GitPullError,
    authenticated_url,
    get_remote_url,
    pull_repo,
)
from wikisync.repo.git_repo import ChangeKind, CommitInfo, FileChange, GitRepo

__all__ = [
    "ChangeKind",
    "CommitInfo",
    "FileChange",
    "FileFilter",
    "GitCredentials",
    "GitPullError",
    "GitRepo",
    "VersionDelta",
    "VersionDeltaExtractor",
    "authenticated_url",
    "build_file_tree",
    "get_remote_url",
    "pull_repo",
]
