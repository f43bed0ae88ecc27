"""Repository sync status and manual trigger endpoints."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from wikisync.api.deps import get_db, get_repository, get_scheduler
from wikisync.api.schemas import (
    CatalogNodeResponse,
    ChangelogEntryResponse,
    SyncAccepted,
    SyncRecordResponse,
)
from wikisync.db.catalog import CatalogStore, CatalogTreeNode
from wikisync.db.changelog import ChangelogStore
from wikisync.db.connection import Database
from wikisync.db.repositories import RepositoryRecord, RepositoryStatus, RepositoryStore
from wikisync.db.sync_records import SyncRecordStore, SyncTrigger
from wikisync.sync.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/repos", tags=["sync"])


def _to_catalog_response(item: CatalogTreeNode) -> CatalogNodeResponse:
    return CatalogNodeResponse(
        id=item.node.id,
        name=item.node.name,
        slug=item.node.slug,
        description=item.node.description,
        order=item.node.order,
        prompt=item.node.prompt,
        children=[_to_catalog_response(child) for child in item.children],
    )


@router.get("/{repository_id}/sync-records", response_model=list[SyncRecordResponse])
async def list_sync_records(
    repository: RepositoryRecord = Depends(get_repository),
    db: Database = Depends(get_db),
    limit: int = Query(20, ge=1, le=200),
) -> list[SyncRecordResponse]:
    """List recent sync attempts, newest first."""
    records = SyncRecordStore(db).list_for_repository(repository.id, limit=limit)
    return [
        SyncRecordResponse(
            id=r.id,
            status=r.status.value,
            trigger=r.trigger.value,
            started_at=r.started_at,
            ended_at=r.ended_at,
            from_version=r.from_version,
            to_version=r.to_version,
            file_count=r.file_count,
            error_message=r.error_message,
        )
        for r in records
    ]


@router.get("/{repository_id}/changelog", response_model=list[ChangelogEntryResponse])
async def list_changelog(
    repository: RepositoryRecord = Depends(get_repository),
    db: Database = Depends(get_db),
) -> list[ChangelogEntryResponse]:
    """List changelog entries, newest first."""
    return [
        ChangelogEntryResponse(
            id=e.id,
            timestamp=e.timestamp,
            title=e.title,
            description=e.description,
            author=e.author,
        )
        for e in ChangelogStore(db).list_for_repository(repository.id)
    ]


@router.get("/{repository_id}/catalog", response_model=list[CatalogNodeResponse])
async def get_catalog(
    repository: RepositoryRecord = Depends(get_repository),
    db: Database = Depends(get_db),
) -> list[CatalogNodeResponse]:
    """Get the live catalog tree."""
    return [_to_catalog_response(item) for item in CatalogStore(db).live_tree(repository.id)]


@router.post("/{repository_id}/sync", response_model=SyncAccepted, status_code=202)
async def trigger_sync(
    background_tasks: BackgroundTasks,
    repository: RepositoryRecord = Depends(get_repository),
    db: Database = Depends(get_db),
    scheduler: SyncScheduler = Depends(get_scheduler),
) -> SyncAccepted:
    """Start a manual sync cycle for a repository."""
    if repository.status is not RepositoryStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail=f"Repository is {repository.status.value}; only completed repositories can sync",
        )
    if not RepositoryStore(db).list_documents(repository.id):
        raise HTTPException(status_code=409, detail="Repository has no document checkout")

    background_tasks.add_task(_run_manual_sync, scheduler, repository)
    return SyncAccepted(repository_id=repository.id)


async def _run_manual_sync(scheduler: SyncScheduler, repository: RepositoryRecord) -> None:
    """Run a manual cycle; failures are already recorded on the sync record."""
    try:
        await scheduler.sync_repository(repository, SyncTrigger.MANUAL)
    except Exception as e:
        logger.error(f"Manual sync for {repository.name} failed: {e}")
