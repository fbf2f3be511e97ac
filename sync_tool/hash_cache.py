"""
Persistent MD5 cache for the local library.

Hashes are keyed by the file path relative to the synchronized root and are
trusted only while the file's modification time matches the one recorded
with the hash. The cache is shared by all upload workers: a lock per path
makes each compute-or-fetch atomic without serializing unrelated files.
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from shared.constants import HASH_READ_SIZE
from shared.exceptions import CachePersistenceError
from shared.models import CacheEntry

logger = logging.getLogger(__name__)


def file_mtime(path: Union[str, Path]) -> int:
    """Modification time of a file in whole milliseconds."""
    return os.stat(path).st_mtime_ns // 1000000


def md5sum(path: Union[str, Path]) -> str:
    """
    Calculate the MD5 hash of a file.

    Each call uses its own digest object, so concurrent workers never share
    digest state.

    Returns:
        Lowercase hexadecimal MD5, always 32 characters wide
    """
    md5 = hashlib.md5()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(HASH_READ_SIZE), b''):
            md5.update(chunk)
    return md5.hexdigest()


class HashCache:
    """Maps relative paths to content hashes, invalidated by mtime."""

    def __init__(self, entries: Optional[Dict[str, CacheEntry]] = None):
        self._entries: Dict[str, CacheEntry] = dict(entries or {})
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()
        # Number of digests actually computed by this instance
        self.computed = 0

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def __contains__(self, relative_path: str) -> bool:
        with self._guard:
            return relative_path in self._entries

    def _lock_for(self, relative_path: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(relative_path)
            if lock is None:
                lock = threading.Lock()
                self._locks[relative_path] = lock
            return lock

    def get(self, relative_path: str) -> Optional[CacheEntry]:
        with self._guard:
            return self._entries.get(relative_path)

    def entries(self) -> List[CacheEntry]:
        """Snapshot of all entries."""
        with self._guard:
            return list(self._entries.values())

    def get_hash(self, path: Union[str, Path], relative_path: str) -> str:
        """
        Return the content hash of a file, computing it only when needed.

        The cached hash is reused when the stored modification time equals
        the file's current one. Otherwise the file is read in full and the
        entry (hash and mtime) is replaced.

        Args:
            path: Location of the file on disk
            relative_path: Cache key, the path relative to the library root

        Raises:
            OSError: If the file cannot be stat'ed or read
        """
        with self._lock_for(relative_path):
            mtime = file_mtime(path)
            entry = self.get(relative_path)
            if entry is not None and entry.last_modified == mtime:
                logger.debug(f"Cache hit: {relative_path}")
                return entry.content_hash

            logger.debug(f"Hashing {relative_path} (cached mtime={entry.last_modified if entry else None}, current={mtime})")
            content_hash = md5sum(path)
            with self._guard:
                self._entries[relative_path] = CacheEntry(relative_path, content_hash, mtime)
                self.computed += 1
            return content_hash

    def to_dict(self) -> Dict[str, Dict[str, Union[str, int]]]:
        with self._guard:
            return {key: entry.to_dict() for key, entry in self._entries.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict]) -> 'HashCache':
        """Build a cache from its persisted shape, dropping malformed entries."""
        entries = {}
        for key, value in data.items():
            try:
                entries[key] = CacheEntry.from_dict(key, value)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping malformed cache entry {key!r}: {e}")
        return cls(entries)

    @classmethod
    def load(cls, cache_file: Union[str, Path]) -> 'HashCache':
        """
        Load the cache from a JSON file.

        A missing file gives an empty cache. An unreadable or malformed file
        is logged and also gives an empty cache, since every hash can be
        recomputed.
        """
        cache_file = Path(cache_file)
        if not cache_file.exists():
            return cls()
        try:
            with open(cache_file, 'r', encoding='utf-8') as f:
                content = f.read().strip()
            if not content:
                return cls()
            cache = cls.from_dict(json.loads(content))
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable hash cache {cache_file}: {e}")
            return cls()
        logger.debug(f"Loaded {len(cache)} cached hashes from {cache_file}")
        return cache

    def save(self, cache_file: Union[str, Path]) -> None:
        """
        Write every entry to a JSON file.

        The data goes to a temporary file next to the target which then
        replaces it, so a failed write leaves the previous cache intact.

        Raises:
            CachePersistenceError: If the file cannot be written
        """
        cache_file = Path(cache_file)
        data = self.to_dict()
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', dir=str(cache_file.parent),
                prefix=cache_file.name + '.', suffix='.tmp', delete=False
            ) as tmp:
                tmp_path = tmp.name
                json.dump(data, tmp, ensure_ascii=False, indent=1, sort_keys=True)
            os.replace(tmp_path, cache_file)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise CachePersistenceError(f"Could not save hash cache to {cache_file}: {e}") from e
        logger.debug(f"Saved {len(data)} cached hashes to {cache_file}")
