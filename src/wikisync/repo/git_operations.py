"""Git pull with optional credentials and friendly error handling."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit


class GitPullError(Exception):
    """Error during git pull operation."""

    def __init__(self, message: str, original_error: Optional[str] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


@dataclass(frozen=True)
class GitCredentials:
    """User name and password (or token) for an HTTPS remote."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"GitCredentials(username={self.username!r}, password='***')"


def authenticated_url(url: str, credentials: GitCredentials) -> str:
    """
    Embed credentials into an HTTP(S) remote URL.

    Other URL schemes (ssh, file, local paths) are returned unchanged since
    they authenticate some other way.

    Args:
        url: Remote URL
        credentials: Credentials to embed

    Returns:
        The URL with ``user:password@`` in its network location
    """
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url

    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = f"{quote(credentials.username, safe='')}:{quote(credentials.password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def get_remote_url(repo_path: Path) -> str:
    """
    Get the origin remote URL of a repository.

    Args:
        repo_path: Path to the git repository

    Returns:
        The origin remote URL

    Raises:
        ValueError: If no origin remote is configured
    """
    result = subprocess.run(
        ["git", "remote", "get-url", "origin"],
        cwd=repo_path,
        capture_output=True,
        text=True,
    )

    if result.returncode != 0:
        raise ValueError(f"No origin remote configured: {result.stderr}")

    return result.stdout.strip()


def _redact(text: str, credentials: Optional[GitCredentials]) -> str:
    """Remove secrets from git output before it is logged or stored."""
    if not credentials:
        return text
    for secret in {credentials.password, quote(credentials.password, safe="")}:
        if secret:
            text = text.replace(secret, "***")
    return text


def pull_repo(
    repo_path: Path,
    branch: Optional[str] = None,
    credentials: Optional[GitCredentials] = None,
    timeout: int = 120,
) -> None:
    """
    Pull latest changes from origin.

    Args:
        repo_path: Path to the git repository
        branch: Branch to pull (defaults to the checked-out branch's upstream)
        credentials: Optional credentials for an HTTPS origin
        timeout: Timeout in seconds (default 2 minutes)

    Raises:
        GitPullError: If pull fails, with user-friendly message
    """
    cmd = ["git", "pull"]
    if branch or credentials:
        remote = "origin"
        if credentials:
            try:
                remote = authenticated_url(get_remote_url(repo_path), credentials)
            except ValueError as e:
                raise GitPullError(
                    "Repository has no origin remote to pull from.", original_error=str(e)
                ) from e
        cmd.append(remote)
        if branch:
            cmd.append(branch)

    # Never block on an interactive credential prompt
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}

    try:
        result = subprocess.run(
            cmd,
            cwd=repo_path,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=env,
        )

        if result.returncode != 0:
            stderr = _redact(result.stderr, credentials)
            raise GitPullError(_parse_pull_error(stderr), original_error=stderr)

    except subprocess.TimeoutExpired:
        raise GitPullError("Pull operation timed out. Check your network connection.")
    except FileNotFoundError:
        raise GitPullError("Git is not installed. Please install git and try again.")


def _parse_pull_error(stderr: str) -> str:
    """Convert git pull error to user-friendly message."""
    stderr_lower = stderr.lower()

    if "does not appear to be a git repository" in stderr_lower:
        return (
            "Original repository no longer exists at the configured location. "
            "The repository may need to be registered again from its new address."
        )

    if "not a git repository" in stderr_lower:
        return "Local checkout is not a git repository."

    if "authentication" in stderr_lower or "permission denied" in stderr_lower:
        return "Authentication failed. Check your credentials and try again."

    if "could not resolve host" in stderr_lower or "network" in stderr_lower:
        return "Network error. Try again later."

    if "couldn't find remote ref" in stderr_lower:
        return "Branch not found on the remote."

    if "merge conflict" in stderr_lower or "conflict" in stderr_lower:
        return "Merge conflict detected. The local checkout must not be modified by hand."

    return f"Pull failed: {stderr.strip()}"
