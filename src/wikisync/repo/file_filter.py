"""File filtering with default excludes and .wikisyncignore support."""

import fnmatch
from pathlib import Path

IGNORE_FILENAME = ".wikisyncignore"

DEFAULT_EXCLUDES = [
    # Hidden files and directories (.git, .env, tool caches)
    ".*",
    # Dependencies
    "node_modules",
    "vendor",
    "venv",
    "__pycache__",
    "*.pyc",
    # Build outputs
    "build",
    "dist",
    "target",
    "out",
    # Minified/bundled assets
    "*.min.js",
    "*.min.css",
    "*.bundle.js",
    "*.map",
    # Lock files
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "Cargo.lock",
    "poetry.lock",
]


class FileFilter:
    """Filter repository paths against exclude patterns."""

    def __init__(
        self,
        repo_path: Path,
        extra_excludes: list[str] | None = None,
        ignore_path: Path | None = None,
    ):
        """Initialize file filter.

        Args:
            repo_path: Path to repository root.
            extra_excludes: Additional exclude patterns.
            ignore_path: Path to ignore file. Defaults to .wikisyncignore in repo_path.
        """
        self.repo_path = repo_path
        self.exclude_patterns = list(DEFAULT_EXCLUDES)
        if extra_excludes:
            self.exclude_patterns.extend(extra_excludes)

        if ignore_path is None:
            ignore_path = repo_path / IGNORE_FILENAME

        if ignore_path.exists():
            for line in ignore_path.read_text().splitlines():
                line = line.strip()
                if line and not line.startswith("#"):
                    self.exclude_patterns.append(line)

    def _is_excluded(self, path: str) -> bool:
        """Check if path matches any exclude pattern.

        Args:
            path: Relative file path.

        Returns:
            True if path should be excluded.
        """
        parts = path.split("/")

        for pattern in self.exclude_patterns:
            # Trailing slash: match any directory component
            if pattern.endswith("/"):
                dir_pattern = pattern.rstrip("/")
                if any(fnmatch.fnmatch(part, dir_pattern) for part in parts[:-1]):
                    return True
            # Patterns containing "/" match as path prefixes
            elif "/" in pattern:
                if path.startswith(pattern + "/") or path == pattern:
                    return True
                if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(path, pattern + "/*"):
                    return True
            else:
                if any(fnmatch.fnmatch(part, pattern) for part in parts):
                    return True
                if fnmatch.fnmatch(path, pattern):
                    return True

        return False

    def filter(self, files: list[str]) -> list[str]:
        """Drop excluded paths, returning the rest sorted."""
        return sorted(f for f in files if not self._is_excluded(f))


def build_file_tree(files: list[str]) -> str:
    """Render relative file paths as an indented tree.

    Directories are listed before the files they contain, both sorted by name,
    and end with "/".

    Example:
        >>> print(build_file_tree(["src/app.py", "README.md"]))
        src/
          app.py
        README.md
    """
    tree: dict = {}
    for path in files:
        node = tree
        parts = path.split("/")
        for part in parts[:-1]:
            node = node.setdefault(part + "/", {})
        node.setdefault(parts[-1], None)

    lines: list[str] = []

    def render(node: dict, depth: int) -> None:
        dirs = sorted(k for k, v in node.items() if v is not None)
        leaves = sorted(k for k, v in node.items() if v is None)
        for name in dirs:
            lines.append("  " * depth + name)
            render(node[name], depth + 1)
        for name in leaves:
            lines.append("  " * depth + name)

    render(tree, 0)
    return "\n".join(lines)
