"""
Sync engine: ties login, scanning, reconciliation and uploading together.

Setup problems surface as SetupError and are left for the caller to turn
into an exit status. The engine never reads from the terminal: the upload
confirmation is passed in as a callable.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from shared.exceptions import CachePersistenceError
from shared.models import Session, SyncReport, UploadOutcome
from sync_tool.client import IBroadcastClient
from sync_tool.config import SyncConfig
from sync_tool.hash_cache import HashCache
from sync_tool.reconciler import Reconciler
from sync_tool.scanner import scan_directory
from sync_tool.uploader import OutcomeCallback, TaskCallback, UploadExecutor

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[Sequence[Path]], bool]


class SyncEngine:
    """Runs one synchronization of a local library to iBroadcast."""

    def __init__(self, client: IBroadcastClient, config: SyncConfig):
        self.client = client
        self.config = config

    def login(self) -> Session:
        return self.client.login(self.config.email, self.config.password)

    def scan(self, session: Session) -> List[Path]:
        """Files under the root whose type the server accepts."""
        files = scan_directory(self.config.root, session.supported_extensions)
        logger.debug(f"Found {len(files)} supported files under {self.config.root}")
        return files

    def _save_cache(self, cache: HashCache, report: SyncReport) -> None:
        try:
            cache.save(self.config.cache_path)
            report.cache_saved = True
        except CachePersistenceError as e:
            logger.warning(str(e))
            report.cache_error = str(e)

    def sync(self, session: Session, files: Sequence[Path], confirm: ConfirmCallback,
             on_outcome: Optional[OutcomeCallback] = None,
             on_upload_start: Optional[TaskCallback] = None) -> SyncReport:
        """
        Upload every file the server does not have yet.

        An empty file list returns at once, before asking for confirmation.
        The hash cache is written back whatever happens during the upload
        pass.

        Raises:
            SetupError: If the server checksums cannot be fetched
        """
        report = SyncReport(found=len(files))
        if not files:
            return report

        if not confirm(files):
            report.aborted = True
            return report

        manifest = self.client.fetch_manifest(session)
        cache = HashCache.load(self.config.cache_path)
        try:
            reconciler = Reconciler(self.config.root, cache, manifest)
            executor = UploadExecutor(
                self.client, session, reconciler,
                parallel=self.config.parallel,
                on_outcome=on_outcome,
                on_upload_start=on_upload_start,
            )
            report.outcomes = executor.run(files)
        finally:
            self._save_cache(cache, report)
        return report

    def status(self, session: Session, files: Sequence[Path]) -> SyncReport:
        """
        Classify files without uploading anything.

        Hashes computed here are kept in the cache for the next run.
        Files that would be uploaded are reported with the task's relative
        path under `pending`.
        """
        report = SyncReport(found=len(files))
        if not files:
            return report

        manifest = self.client.fetch_manifest(session)
        cache = HashCache.load(self.config.cache_path)
        try:
            reconciler = Reconciler(self.config.root, cache, manifest)
            for decision in reconciler.plan(files):
                if isinstance(decision, UploadOutcome):
                    report.outcomes.append(decision)
                else:
                    report.pending.append(decision.relative_path)
        finally:
            self._save_cache(cache, report)
        return report
