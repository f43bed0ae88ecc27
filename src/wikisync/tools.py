"""Static registry of repository tools exposed to agents.

Tools are registered explicitly by name when the process starts. Each handler
receives the repository ID and keyword arguments, and returns text.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from wikisync.db.catalog import CatalogStore, CatalogTreeNode
from wikisync.db.connection import Database
from wikisync.db.repositories import RepositoryStore
from wikisync.repo.git_repo import GitRepo
from wikisync.sync.prompts import ASK_REPOSITORY_TEMPLATE, SYSTEM_PROMPT

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[str]]


class ToolError(Exception):
    """Raised when a tool cannot run."""

    pass


@dataclass(frozen=True)
class Tool:
    """A named tool."""

    name: str
    description: str
    handler: ToolHandler


class ToolRegistry:
    """Maps tool names to handlers."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, name: str, description: str, handler: ToolHandler) -> None:
        if name in self._tools:
            raise ValueError(f"Tool {name!r} is already registered")
        self._tools[name] = Tool(name=name, description=description, handler=handler)

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolError(f"Unknown tool: {name}") from None

    def list_tools(self) -> list[Tool]:
        return sorted(self._tools.values(), key=lambda t: t.name)

    async def call(self, name: str, repository_id: str, **arguments) -> str:
        """Run a tool for a repository."""
        tool = self.get(name)
        logger.info(f"Calling tool {name} for repository {repository_id}")
        try:
            inspect.signature(tool.handler).bind(repository_id, **arguments)
        except TypeError as e:
            raise ToolError(f"Invalid arguments for {name}: {e}") from e
        return await tool.handler(repository_id, **arguments)


def render_catalog(tree: list[CatalogTreeNode], depth: int = 0) -> str:
    """Render a live catalog tree as a nested Markdown list."""
    lines = []
    for item in tree:
        lines.append(f"{'  ' * depth}- {item.node.name} ({item.node.slug})")
        if item.children:
            lines.append(render_catalog(item.children, depth + 1))
    return "\n".join(lines)


def build_tool_registry(db: Database, llm_client, readme_max_chars: int = 4000) -> ToolRegistry:
    """Create the registry with the built-in repository tools."""
    repositories = RepositoryStore(db)
    catalog = CatalogStore(db)

    def require_repository(repository_id: str):
        repository = repositories.get(repository_id)
        if repository is None:
            raise ToolError(f"Repository {repository_id} does not exist")
        return repository

    async def list_catalog(repository_id: str) -> str:
        require_repository(repository_id)
        rendered = render_catalog(catalog.live_tree(repository_id))
        return rendered or "(empty catalog)"

    async def ask_repository(repository_id: str, question: str) -> str:
        repository = require_repository(repository_id)
        documents = repositories.list_documents(repository_id)
        if not documents:
            raise ToolError(f"Repository {repository.name} has no documentation yet")

        repo_path = Path(documents[0].git_path)
        readme = await asyncio.to_thread(GitRepo(repo_path).read_readme, readme_max_chars)
        prompt = ASK_REPOSITORY_TEMPLATE.render(
            repo_name=repository.name,
            catalog=render_catalog(catalog.live_tree(repository_id)) or "(empty catalog)",
            readme=readme or "(no README)",
            question=question,
        )
        return await llm_client.generate(prompt=prompt, system_prompt=SYSTEM_PROMPT)

    registry = ToolRegistry()
    registry.register(
        "list_catalog", "List the live documentation catalog of a repository", list_catalog
    )
    registry.register(
        "ask_repository",
        "Answer a question about a repository from its catalog and README",
        ask_repository,
    )
    return registry
