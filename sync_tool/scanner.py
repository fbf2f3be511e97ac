"""
Local library scanner.
Recursively walks the synchronized root and collects the media files whose
extension the server accepts.
"""

import os
import re
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from shared.constants import EXCLUDED_EXTENSIONS
from shared.exceptions import SetupError

# Last ".xxx" suffix of 2 to 5 characters
_EXTENSION_RE = re.compile(r".*(\..{2,5})")


def normalize_extensions(extensions: Iterable[str]) -> Set[str]:
    """
    Lowercase the extensions, give each a leading dot and drop the
    playlist types that are never uploaded.
    """
    normalized = set()
    for ext in extensions:
        ext = (ext or "").strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        normalized.add(ext)
    return normalized - set(EXCLUDED_EXTENSIONS)


def file_extension(filename: str) -> Optional[str]:
    match = _EXTENSION_RE.fullmatch(filename)
    if not match:
        return None
    return match.group(1).lower()


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def relative_key(root: Union[str, Path], path: Union[str, Path]) -> str:
    """POSIX style path of a file relative to the root, used as cache key."""
    return Path(path).relative_to(root).as_posix()


def scan_directory(root: Union[str, Path], extensions: Iterable[str]) -> List[Path]:
    """
    Recursively scan a directory for supported media files.

    Hidden files and hidden directories (names starting with a dot) are
    skipped entirely. Symlinked directories are descended into; a directory
    reached twice through links is scanned only the first time.

    Args:
        root: Top-level directory containing media files
        extensions: Extensions accepted by the server, e.g. ".mp3"

    Returns:
        Matching files sorted by their path relative to the root

    Raises:
        SetupError: If root is not a directory
    """
    root_path = Path(root).expanduser().resolve()
    if not root_path.is_dir():
        raise SetupError(f"not a directory: {root_path}")

    accepted = normalize_extensions(extensions)
    files = []
    visited = set()
    for dirpath, dirnames, filenames in os.walk(str(root_path), followlinks=True):
        # Symlinked directories are followed, each real directory only once
        real = os.path.realpath(dirpath)
        if real in visited:
            dirnames[:] = []
            continue
        visited.add(real)
        dirnames[:] = [d for d in dirnames if not is_hidden(d)]
        for filename in filenames:
            if is_hidden(filename):
                continue
            if file_extension(filename) not in accepted:
                continue
            file_path = Path(dirpath) / filename
            if file_path.is_file():
                files.append(file_path)

    files.sort(key=lambda p: relative_key(root_path, p))
    return files
