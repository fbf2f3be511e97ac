"""
Data models for cache entries, upload tasks and outcomes.

This module defines the core data structures passed between the hash cache,
the reconciler and the upload executor.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Union


class UploadStatus(Enum):
    """Final state of a single file in a sync run."""
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PromptChoice(Enum):
    """Answer given at the list/upload/quit prompt."""
    LIST = "l"
    UPLOAD = "u"
    QUIT = "q"


@dataclass
class CacheEntry:
    """
    Cached content hash of one file.

    Attributes:
        relative_path: Path of the file relative to the synchronized root
        content_hash: Lowercase hex MD5 of the file content
        last_modified: File modification time (ms) when the hash was computed
    """
    relative_path: str
    content_hash: str
    last_modified: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to the persisted cache shape."""
        return {"md5": self.content_hash, "mod": self.last_modified}

    @classmethod
    def from_dict(cls, relative_path: str, data: Dict[str, Any]) -> 'CacheEntry':
        """Create CacheEntry from its persisted shape."""
        return cls(
            relative_path=relative_path,
            content_hash=str(data["md5"]),
            last_modified=int(data["mod"]),
        )


@dataclass(frozen=True)
class Session:
    """Authenticated user session returned by login."""
    user_id: str
    token: str
    supported_extensions: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class UploadTask:
    """
    A file that has to be sent to the server.

    Attributes:
        path: Absolute path of the file on disk
        relative_path: Path relative to the synchronized root
        ordinal: 1-based position of the file in the run
        total: Number of candidate files in the run
    """
    path: Path
    relative_path: str
    ordinal: int
    total: int


@dataclass(frozen=True)
class UploadOutcome:
    """Result for one candidate file, used for reporting only."""
    relative_path: str
    status: UploadStatus
    ordinal: int
    total: int
    reason: Optional[str] = None

    @classmethod
    def skipped(cls, relative_path: str, ordinal: int, total: int) -> 'UploadOutcome':
        return cls(relative_path, UploadStatus.SKIPPED, ordinal, total)

    @classmethod
    def succeeded(cls, task: UploadTask) -> 'UploadOutcome':
        return cls(task.relative_path, UploadStatus.SUCCEEDED, task.ordinal, task.total)

    @classmethod
    def failed(cls, relative_path: str, ordinal: int, total: int, reason: str) -> 'UploadOutcome':
        return cls(relative_path, UploadStatus.FAILED, ordinal, total, reason)


# The reconciler either settles a file right away (skip, or failure while
# hashing) or hands an UploadTask to the executor.
UploadDecision = Union[UploadOutcome, UploadTask]


@dataclass
class SyncReport:
    """
    Summary of a sync run.

    Attributes:
        found: Number of candidate files found under the root
        outcomes: One outcome per candidate file, in completion order
        pending: Files that would be uploaded (status runs only)
        aborted: True if the user declined the upload
        cache_saved: True if the hash cache was written back
        cache_error: Message of the cache persistence failure, if any
    """
    found: int = 0
    outcomes: List[UploadOutcome] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)
    aborted: bool = False
    cache_saved: bool = False
    cache_error: Optional[str] = None

    def count(self, status: UploadStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def skipped(self) -> int:
        return self.count(UploadStatus.SKIPPED)

    @property
    def succeeded(self) -> int:
        return self.count(UploadStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self.count(UploadStatus.FAILED)

    @property
    def ok(self) -> bool:
        """True when no file failed."""
        return self.failed == 0
