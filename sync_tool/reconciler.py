"""
Decides, file by file, whether a local file still has to be uploaded.
"""

import logging
from pathlib import Path
from typing import AbstractSet, Iterable, List, Set, Union

from shared.constants import HASH_HEX_WIDTH
from shared.models import UploadDecision, UploadOutcome, UploadTask
from sync_tool.hash_cache import HashCache
from sync_tool.scanner import relative_key

logger = logging.getLogger(__name__)


def hash_forms(content_hash: str) -> Set[str]:
    """
    Both spellings a hash may have in the server manifest.

    Older clients rendered the digest as a plain number, dropping leading
    zero nibbles, so the manifest can hold either the short or the full
    width form.
    """
    content_hash = content_hash.lower()
    natural = content_hash.lstrip("0") or "0"
    return {natural, natural.zfill(HASH_HEX_WIDTH)}


class Reconciler:
    """Classifies files as already known to the server or to be uploaded."""

    def __init__(self, root: Union[str, Path], cache: HashCache, manifest: AbstractSet[str]):
        self.root = Path(root)
        self.cache = cache
        self.manifest = manifest

    def is_known(self, content_hash: str) -> bool:
        return not self.manifest.isdisjoint(hash_forms(content_hash))

    def decide(self, path: Path, ordinal: int, total: int) -> UploadDecision:
        """
        Hash one file and compare it against the manifest.

        Returns:
            A skipped outcome when the server has the file, a failed outcome
            when the file could not be read, otherwise an UploadTask
        """
        rel = relative_key(self.root, path)
        try:
            content_hash = self.cache.get_hash(path, rel)
        except OSError as e:
            logger.debug(f"Could not hash {rel}: {e}")
            return UploadOutcome.failed(rel, ordinal, total, f"could not read file: {e}")

        if self.is_known(content_hash):
            return UploadOutcome.skipped(rel, ordinal, total)
        return UploadTask(path=path, relative_path=rel, ordinal=ordinal, total=total)

    def order(self, files: Iterable[Path]) -> List[Path]:
        """Files sorted by relative path, so ordinals are reproducible."""
        return sorted(files, key=lambda p: relative_key(self.root, p))

    def plan(self, files: Iterable[Path]) -> List[UploadDecision]:
        """Sequentially decide every file. Used for dry runs and tests."""
        ordered = self.order(files)
        total = len(ordered)
        return [self.decide(path, i, total) for i, path in enumerate(ordered, start=1)]
