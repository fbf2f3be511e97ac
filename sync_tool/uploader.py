"""
Upload engine: reconciles and uploads files with bounded parallelism.
"""

import concurrent.futures
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from shared.constants import DEFAULT_PARALLEL_UPLOADS, HTTP_OK, MAX_PARALLEL_UPLOADS
from shared.exceptions import TransportError
from shared.models import Session, UploadOutcome, UploadTask
from sync_tool.client import IBroadcastClient
from sync_tool.reconciler import Reconciler
from sync_tool.scanner import relative_key

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[UploadOutcome], None]
TaskCallback = Callable[[UploadTask], None]


def clamp_parallel(parallel: int) -> int:
    return max(1, min(int(parallel), MAX_PARALLEL_UPLOADS))


class UploadExecutor:
    """
    Runs the per-file reconcile-and-upload unit on a thread pool.

    Every candidate file yields exactly one UploadOutcome. A failing file
    never stops the others and is never retried within the run.
    """

    def __init__(self, client: IBroadcastClient, session: Session, reconciler: Reconciler,
                 parallel: int = DEFAULT_PARALLEL_UPLOADS,
                 on_outcome: Optional[OutcomeCallback] = None,
                 on_upload_start: Optional[TaskCallback] = None):
        self.client = client
        self.session = session
        self.reconciler = reconciler
        self.parallel = clamp_parallel(parallel)
        self.on_outcome = on_outcome
        self.on_upload_start = on_upload_start

    def execute(self, task: UploadTask) -> UploadOutcome:
        """Make one upload attempt; success means HTTP 200."""
        if self.on_upload_start:
            self.on_upload_start(task)
        try:
            status = self.client.upload_file(self.session, task.path, task.relative_path)
        except (TransportError, OSError) as e:
            return UploadOutcome.failed(task.relative_path, task.ordinal, task.total, str(e))

        if status == HTTP_OK:
            return UploadOutcome.succeeded(task)
        return UploadOutcome.failed(task.relative_path, task.ordinal, task.total, f"HTTP {status}")

    def process(self, path: Path, ordinal: int, total: int) -> UploadOutcome:
        decision = self.reconciler.decide(path, ordinal, total)
        if isinstance(decision, UploadOutcome):
            return decision
        return self.execute(decision)

    def run(self, files: Sequence[Path]) -> List[UploadOutcome]:
        """
        Process all files and collect their outcomes in completion order.

        Args:
            files: Candidate files under the reconciler's root

        Returns:
            One outcome per file
        """
        ordered = self.reconciler.order(files)
        total = len(ordered)
        outcomes = []

        with ThreadPoolExecutor(max_workers=self.parallel) as executor:
            future_to_task = {
                executor.submit(self.process, path, ordinal, total): (path, ordinal)
                for ordinal, path in enumerate(ordered, start=1)
            }

            for future in concurrent.futures.as_completed(future_to_task):
                path, ordinal = future_to_task[future]
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.exception(f"Unexpected error processing {path}")
                    rel = relative_key(self.reconciler.root, path)
                    outcome = UploadOutcome.failed(rel, ordinal, total, f"unexpected error: {e}")

                outcomes.append(outcome)
                if self.on_outcome:
                    try:
                        self.on_outcome(outcome)
                    except Exception:
                        logger.exception(f"Outcome callback failed for {outcome.relative_path}")

        return outcomes
