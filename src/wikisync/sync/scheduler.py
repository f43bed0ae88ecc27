"""Background synchronization of stale repositories.

One cycle for one repository:

1. Create an in-progress sync record.
2. Pull the checkout and list commits since the remembered revision.
3. Ask the analysis model for a catalog delta and reconcile it.
4. Hand the written nodes to the content generator.
5. Summarize the new commits into changelog entries.
6. Advance the repository revision and document timestamps, and finish the
   record.

A cycle that finds no new commits is recorded as failed with an explanatory
message and still refreshes the document timestamps, so the repository is not
picked again until the staleness window passes.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from wikisync.config import SyncConfig, load_settings
from wikisync.constants import NO_NEW_COMMITS_MESSAGE
from wikisync.db.catalog import CatalogStore
from wikisync.db.changelog import ChangelogStore
from wikisync.db.connection import Database, utc_now
from wikisync.db.repositories import DocumentRecord, RepositoryRecord, RepositoryStore
from wikisync.db.sync_records import SyncRecord, SyncRecordStore, SyncStatus, SyncTrigger
from wikisync.llm.client import LLMError
from wikisync.llm.invoker import AnalysisInvoker, ExtractionError
from wikisync.repo.delta import VersionDeltaExtractor
from wikisync.repo.file_filter import FileFilter, build_file_tree
from wikisync.repo.git_operations import GitCredentials, GitPullError
from wikisync.repo.git_repo import GitRepo
from wikisync.sync.analysis import CatalogAnalyzer
from wikisync.sync.catalog import CatalogReconciler, CatalogStructureError
from wikisync.sync.changelog import ChangelogGenerator
from wikisync.sync.content import ContentGenerator, PendingContentGenerator

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Raised when a repository cannot be synchronized at all."""

    pass


# Errors whose messages are already written for operators
OWN_ERRORS = (SyncError, LLMError, ExtractionError, GitPullError, CatalogStructureError)


def describe_error(e: Exception) -> str:
    """Message recorded on a failed sync record."""
    if isinstance(e, OWN_ERRORS) and str(e):
        return str(e)
    return f"{type(e).__name__}: {e}" if str(e) else type(e).__name__


def render_file_tree(repo_path: Path) -> str:
    """Render the tracked, non-excluded files of a checkout."""
    files = FileFilter(repo_path).filter(GitRepo(repo_path).list_files())
    return build_file_tree(files)


class SyncScheduler:
    """Polls for stale repositories and runs sync cycles one at a time."""

    def __init__(
        self,
        db: Database,
        invoker: AnalysisInvoker,
        config: SyncConfig | None = None,
        readme_max_chars: int = 4000,
        content_generator: ContentGenerator | None = None,
        delta_extractor: VersionDeltaExtractor | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            db: Database holding repositories, catalogs and records.
            invoker: Analysis invoker shared by catalog and changelog analysis.
            config: Scheduling settings; read from settings when omitted.
            readme_max_chars: README prefix length passed to changelog analysis.
            content_generator: Receives nodes written by each cycle.
            delta_extractor: Pulls checkouts and lists new commits.
            clock: Current time, used for the staleness cutoff.
            sleep: Awaitable sleep, replaced in tests.
        """
        self.db = db
        self.config = config or load_settings().sync
        self.repositories = RepositoryStore(db)
        self.catalog = CatalogStore(db)
        self.records = SyncRecordStore(db)
        self.changelog = ChangelogStore(db)
        self.reconciler = CatalogReconciler(self.catalog)
        self.analyzer = CatalogAnalyzer(invoker)
        self.changelog_generator = ChangelogGenerator(self.changelog, invoker, readme_max_chars)
        self.content_generator = content_generator or PendingContentGenerator()
        self.delta_extractor = delta_extractor or VersionDeltaExtractor()
        self._clock = clock
        self._sleep = sleep
        self._cycle_lock = asyncio.Lock()

    def cutoff(self) -> datetime:
        """Documents last updated before this time are stale."""
        return self._clock() - timedelta(days=self.config.update_interval_days)

    def select_candidate(self) -> tuple[RepositoryRecord, list[DocumentRecord]] | None:
        """Pick the next eligible repository and its stale documents."""
        cutoff = self.cutoff()
        repository = self.repositories.next_stale_repository(cutoff)
        if repository is None:
            return None
        return repository, self.repositories.stale_documents(repository.id, cutoff)

    async def run(self) -> None:
        """Poll and sync until cancelled."""
        await self._sleep(self.config.startup_delay_secs)

        if not self.config.enabled:
            logger.warning("Incremental update is not enabled, sync scheduler not started")
            return

        logger.info(
            f"Sync scheduler started (staleness {self.config.update_interval_days} days, "
            f"poll every {self.config.poll_interval_secs:g}s)"
        )
        while True:
            try:
                processed = await self.run_once()
                if not processed:
                    await self._sleep(self.config.poll_interval_secs)
            except asyncio.CancelledError:
                logger.info("Sync scheduler stopped")
                raise
            except Exception:
                logger.exception("Failed to process repository")
                await self._sleep(self.config.failure_backoff_secs)

    async def run_once(self) -> bool:
        """Sync the next eligible repository, if any.

        Returns:
            True if a repository was processed.
        """
        candidate = self.select_candidate()
        if candidate is None:
            return False
        repository, documents = candidate
        await self.sync_repository(repository, SyncTrigger.AUTOMATIC, documents)
        return True

    async def sync_repository(
        self,
        repository: RepositoryRecord,
        trigger: SyncTrigger = SyncTrigger.AUTOMATIC,
        documents: list[DocumentRecord] | None = None,
    ) -> SyncRecord:
        """Run one sync cycle for ``repository``.

        Args:
            repository: Repository to synchronize.
            trigger: What started the cycle.
            documents: Documents the cycle is for; all of the repository's
                documents when omitted.

        Returns:
            The finished sync record.

        Raises:
            SyncError: If the repository has no document checkout.
            Exception: Whatever failed the cycle, after the record is marked failed.
        """
        async with self._cycle_lock:
            if documents is None:
                documents = self.repositories.list_documents(repository.id)
            if not documents:
                raise SyncError(f"Repository {repository.name} has no document checkout")

            document = documents[0]
            repo_path = Path(document.git_path)
            record = self.records.start(repository.id, repository.version, len(documents), trigger)
            logger.info(
                f"Sync {record.id} started for {repository.name} "
                f"({trigger.value}, from {repository.version or 'first sync'})"
            )

            try:
                return await self._run_cycle(repository, document, repo_path, record)
            except asyncio.CancelledError:
                if not record.status.is_terminal:
                    self.records.finish(record, SyncStatus.FAILED, error_message="Sync cancelled")
                raise
            except Exception as e:
                logger.error(f"Sync {record.id} for {repository.name} failed: {e}")
                if not record.status.is_terminal:
                    self.records.finish(
                        record, SyncStatus.FAILED, error_message=describe_error(e)
                    )
                raise

    async def _run_cycle(
        self,
        repository: RepositoryRecord,
        document: DocumentRecord,
        repo_path: Path,
        record: SyncRecord,
    ) -> SyncRecord:
        credentials = None
        if repository.git_username and repository.git_password:
            credentials = GitCredentials(repository.git_username, repository.git_password)

        delta = await asyncio.to_thread(
            self.delta_extractor.extract,
            repo_path,
            repository.version,
            repository.branch,
            credentials,
        )

        if not delta.has_changes:
            logger.info(f"No new commits for {repository.name}")
            self.records.finish(record, SyncStatus.FAILED, error_message=NO_NEW_COMMITS_MESSAGE)
            self.repositories.touch_documents(repository.id)
            return record

        file_tree = await asyncio.to_thread(render_file_tree, repo_path)
        proposal = await self.analyzer.propose(
            repository.address,
            delta,
            self.catalog.live_nodes(repository.id),
            file_tree,
        )
        result = self.reconciler.reconcile(repository.id, document.id, proposal)

        await self.content_generator.generate(result.nodes, file_tree, repository)

        entries = await self.changelog_generator.generate(repository, repo_path)

        with self.db.transaction():
            self.changelog.add_many(entries)
            self.repositories.set_version(repository.id, delta.new_version)
            self.repositories.touch_documents(repository.id)
        self.records.finish(record, SyncStatus.SUCCESS, to_version=delta.new_version)

        logger.info(
            f"Sync {record.id} for {repository.name} succeeded: "
            f"{delta.previous_version or 'first sync'} -> {delta.new_version}"
        )
        return record
