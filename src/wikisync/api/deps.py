"""FastAPI dependency injection functions."""

from functools import lru_cache

from fastapi import Depends, HTTPException, status

from wikisync.config import Config, load_settings
from wikisync.db.connection import Database
from wikisync.db.migrations import run_migrations
from wikisync.db.repositories import RepositoryRecord, RepositoryStore
from wikisync.llm.client import LLMClient
from wikisync.llm.invoker import AnalysisInvoker
from wikisync.sync.access_log import AccessLogEvent
from wikisync.sync.queue import BoundedWorkQueue
from wikisync.sync.scheduler import SyncScheduler
from wikisync.tools import ToolRegistry, build_tool_registry


@lru_cache
def get_settings() -> Config:
    """Get cached application settings."""
    return load_settings()


_db_instance: Database | None = None


def get_db() -> Database:
    """Get database connection with migrations applied."""
    global _db_instance

    settings = get_settings()

    # Reconnect if the database file was deleted
    if _db_instance is not None and not settings.db_path.exists():
        _db_instance.close()
        _db_instance = None

    if _db_instance is None:
        _db_instance = Database(settings.db_path)
        run_migrations(_db_instance)
    return _db_instance


def _reset_db_instance() -> None:
    """Reset database instance (for testing only)."""
    global _db_instance
    if _db_instance is not None:
        _db_instance.close()
        _db_instance = None


_llm_instance: LLMClient | None = None


def get_llm() -> LLMClient:
    """Get LLM client instance."""
    global _llm_instance
    if _llm_instance is None:
        settings = get_settings()
        _llm_instance = LLMClient(
            provider=settings.active_provider,
            model=settings.active_model,
            api_key=settings.llm_api_key,
            endpoint=settings.llm_endpoint,
            log_path=settings.llm_log_path,
        )
    return _llm_instance


_scheduler_instance: SyncScheduler | None = None


def get_scheduler() -> SyncScheduler:
    """Get the process-wide sync scheduler."""
    global _scheduler_instance
    if _scheduler_instance is None:
        settings = get_settings()
        _scheduler_instance = SyncScheduler(
            get_db(),
            AnalysisInvoker(get_llm()),
            config=settings.sync,
            readme_max_chars=settings.analysis.readme_max_chars,
        )
    return _scheduler_instance


_access_log_queue: BoundedWorkQueue[AccessLogEvent] | None = None


def get_access_log_queue() -> BoundedWorkQueue[AccessLogEvent]:
    """Get the queue request middleware writes access-log events to."""
    global _access_log_queue
    if _access_log_queue is None:
        settings = get_settings()
        _access_log_queue = BoundedWorkQueue(
            capacity=settings.access_log.capacity,
            policy=settings.access_log.overflow_policy,
        )
    return _access_log_queue


_tool_registry: ToolRegistry | None = None


def get_tool_registry() -> ToolRegistry:
    """Get the tool registry, built on first use."""
    global _tool_registry
    if _tool_registry is None:
        settings = get_settings()
        _tool_registry = build_tool_registry(
            get_db(), get_llm(), readme_max_chars=settings.analysis.readme_max_chars
        )
    return _tool_registry


def _reset_instances() -> None:
    """Reset every cached instance (for testing only)."""
    global _llm_instance, _scheduler_instance, _access_log_queue, _tool_registry
    _reset_db_instance()
    _llm_instance = None
    _scheduler_instance = None
    _access_log_queue = None
    _tool_registry = None
    get_settings.cache_clear()


def get_repository(repository_id: str, db: Database = Depends(get_db)) -> RepositoryRecord:
    """Look up a repository by path parameter.

    Raises:
        HTTPException: 404 if the repository does not exist.
    """
    repository = RepositoryStore(db).get(repository_id)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Repository not found: {repository_id}",
        )
    return repository
