"""Tool registry tests."""

from unittest.mock import AsyncMock

import pytest

from wikisync.db.catalog import CatalogNode, CatalogStore
from wikisync.db.repositories import RepositoryStore
from wikisync.tools import ToolError, ToolRegistry, build_tool_registry


async def echo(repository_id: str, text: str) -> str:
    return f"{repository_id}:{text}"


@pytest.fixture
def llm_client():
    client = AsyncMock()
    client.generate.return_value = "It syncs docs."
    return client


@pytest.fixture
def registry(temp_db, llm_client):
    return build_tool_registry(temp_db, llm_client)


def test_register_rejects_duplicates():
    """A name can only be registered once."""
    registry = ToolRegistry()
    registry.register("echo", "Echo", echo)

    with pytest.raises(ValueError):
        registry.register("echo", "Echo again", echo)


def test_list_tools_sorted(registry):
    """Built-in tools are listed by name."""
    assert [t.name for t in registry.list_tools()] == ["ask_repository", "list_catalog"]


async def test_call_passes_arguments():
    """Arguments reach the handler by keyword."""
    registry = ToolRegistry()
    registry.register("echo", "Echo", echo)

    assert await registry.call("echo", "r1", text="hi") == "r1:hi"


async def test_call_unknown_tool_raises():
    """Unknown tool names raise ToolError."""
    with pytest.raises(ToolError):
        await ToolRegistry().call("missing", "r1")


async def test_call_with_bad_arguments_raises():
    """Missing or unexpected arguments raise ToolError without calling the handler."""
    handler = AsyncMock()

    async def strict(repository_id: str, text: str) -> str:
        return await handler(repository_id, text)

    registry = ToolRegistry()
    registry.register("strict", "Strict", strict)

    with pytest.raises(ToolError):
        await registry.call("strict", "r1")
    with pytest.raises(ToolError):
        await registry.call("strict", "r1", text="a", extra="b")
    handler.assert_not_awaited()


async def test_list_catalog_renders_live_tree(temp_db, registry):
    """list_catalog renders the live tree as a nested list."""
    repositories = RepositoryStore(temp_db)
    repository_id = repositories.add(name="Repo", address="https://example.com/r.git")
    document_id = repositories.add_document(repository_id, "/tmp/r")
    CatalogStore(temp_db).insert_many(
        [
            CatalogNode(
                id="g",
                repository_id=repository_id,
                document_id=document_id,
                name="Guide",
                slug="guide",
            ),
            CatalogNode(
                id="i",
                repository_id=repository_id,
                document_id=document_id,
                name="Install",
                slug="install",
                parent_id="g",
            ),
        ]
    )

    result = await registry.call("list_catalog", repository_id)

    assert result == "- Guide (guide)\n  - Install (install)"


async def test_list_catalog_empty(temp_db, registry):
    """A repository without catalog nodes says so."""
    repository_id = RepositoryStore(temp_db).add(name="Repo", address="a")

    assert await registry.call("list_catalog", repository_id) == "(empty catalog)"


async def test_unknown_repository_raises(registry):
    """Tools refuse unknown repositories."""
    with pytest.raises(ToolError):
        await registry.call("list_catalog", "missing")


async def test_ask_repository_uses_readme(stale_repository, registry, llm_client):
    """ask_repository sends the README and question to the model."""
    repository_id, _, _ = stale_repository

    answer = await registry.call("ask_repository", repository_id, question="What is this?")

    assert answer == "It syncs docs."
    prompt = llm_client.generate.call_args.kwargs["prompt"]
    assert "# Test Project" in prompt
    assert "What is this?" in prompt


async def test_ask_repository_without_documents_raises(temp_db, registry):
    """A repository with no checkout cannot be asked about."""
    repository_id = RepositoryStore(temp_db).add(name="Repo", address="a")

    with pytest.raises(ToolError):
        await registry.call("ask_repository", repository_id, question="?")
