"""FastAPI application entry point."""

import asyncio
import logging
import shutil
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

# Logging constants defined here (not in constants/) because logging.basicConfig()
# must run before any module imports that might create loggers.
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(
    format=LOG_FORMAT,
    datefmt=DATE_FORMAT,
    level=logging.INFO,
)

# Unify uvicorn loggers with app format
for uvicorn_logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
    uvicorn_logger = logging.getLogger(uvicorn_logger_name)
    uvicorn_logger.handlers.clear()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    uvicorn_logger.addHandler(handler)

from wikisync import __version__  # noqa: E402
from wikisync.api.deps import (  # noqa: E402
    get_access_log_queue,
    get_db,
    get_scheduler,
    get_settings,
    get_tool_registry,
)
from wikisync.api.middleware import access_log_middleware  # noqa: E402
from wikisync.api.routers import sync, tools  # noqa: E402
from wikisync.constants import INTERRUPTED_MESSAGE  # noqa: E402
from wikisync.db.access_log import AccessLogStore  # noqa: E402
from wikisync.db.sync_records import SyncRecordStore  # noqa: E402
from wikisync.sync.access_log import AccessLogWorker  # noqa: E402

logger = logging.getLogger(__name__)


def _check_git_available() -> bool:
    """Check if git is installed and available."""
    git_path = shutil.which("git")
    if git_path is None:
        logger.error("Git is not installed or not in PATH. Git is required for syncing.")
        return False
    logger.info(f"Git found at: {git_path}")
    return True


def _cleanup_orphaned_records() -> int:
    """Mark sync records left in progress by a previous process as failed."""
    try:
        return SyncRecordStore(get_db()).fail_in_progress(INTERRUPTED_MESSAGE)
    except Exception as e:
        logger.warning(f"Failed to cleanup orphaned sync records: {e}")
        return 0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan handler for startup and shutdown events.

    On startup:
    - Checks that git is installed
    - Opens the database and marks interrupted sync records as failed
    - Starts the access-log worker and the sync scheduler

    On shutdown:
    - Cancels the scheduler
    - Drains the access-log queue within its grace period
    """
    if not _check_git_available():
        logger.warning("Git not available - repository sync will fail")

    settings = get_settings()
    logger.info(f"Data directory: {settings.data_dir}")

    cleaned = _cleanup_orphaned_records()
    if cleaned > 0:
        logger.info(f"Marked {cleaned} interrupted sync record(s) as failed")

    worker = AccessLogWorker(
        get_access_log_queue(),
        AccessLogStore(get_db()),
        shutdown_grace_secs=settings.access_log.shutdown_grace_secs,
        error_backoff_secs=settings.access_log.error_backoff_secs,
    )
    worker.start()

    registry = get_tool_registry()
    logger.info(f"Registered tools: {', '.join(t.name for t in registry.list_tools())}")

    scheduler_task = asyncio.create_task(get_scheduler().run(), name="sync-scheduler")
    logger.info("wikisync started")

    yield

    scheduler_task.cancel()
    await asyncio.gather(scheduler_task, return_exceptions=True)
    await worker.stop()
    logger.info("wikisync stopped")


app = FastAPI(
    title="wikisync",
    description="Keeps generated repository documentation in step with source changes",
    version=__version__,
    lifespan=lifespan,
)

app.middleware("http")(access_log_middleware)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(sync.router)
app.include_router(tools.router)
