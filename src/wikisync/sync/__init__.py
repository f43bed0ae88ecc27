"""Incremental documentation synchronization."""

from wikisync.sync.access_log import AccessLogEvent, AccessLogWorker
from wikisync.sync.analysis import CatalogAnalyzer
from wikisync.sync.catalog import (
    CatalogProposal,
    CatalogReconciler,
    CatalogStructureError,
    ProposedCatalogNode,
    ReconcileResult,
)
from wikisync.sync.changelog import ChangelogGenerator
from wikisync.sync.content import ContentGenerator, PendingContentGenerator
from wikisync.sync.queue import BoundedWorkQueue, OverflowPolicy
from wikisync.sync.scheduler import SyncError, SyncScheduler

__all__ = [
    "AccessLogEvent",
    "AccessLogWorker",
    "BoundedWorkQueue",
    "CatalogAnalyzer",
    "CatalogProposal",
    "CatalogReconciler",
    "CatalogStructureError",
    "ChangelogGenerator",
    "ContentGenerator",
    "OverflowPolicy",
    "PendingContentGenerator",
    "ProposedCatalogNode",
    "ReconcileResult",
    "SyncError",
    "SyncScheduler",
]
