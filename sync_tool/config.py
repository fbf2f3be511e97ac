"""
Run configuration: credentials, library root and upload settings.

Values given on the command line win; credentials fall back to the
IBROADCAST_EMAIL / IBROADCAST_PASSWORD environment variables, which may also
come from a .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Union

from dotenv import load_dotenv

from shared.constants import (
    CACHE_FILENAME, DEFAULT_PARALLEL_UPLOADS, ENV_EMAIL, ENV_PASSWORD, MAX_PARALLEL_UPLOADS
)
from shared.exceptions import SetupError


@dataclass
class SyncConfig:
    """
    Settings for one sync run.

    Attributes:
        email: Account email address
        password: Account password
        root: Resolved library root directory
        parallel: Number of upload workers
        cache_filename: Name of the hash cache file inside root
    """
    email: str
    password: str
    root: Path
    parallel: int = DEFAULT_PARALLEL_UPLOADS
    cache_filename: str = CACHE_FILENAME

    @property
    def cache_path(self) -> Path:
        return self.root / self.cache_filename

    def __repr__(self) -> str:
        return (f"SyncConfig(email={self.email!r}, password='***', root={str(self.root)!r}, "
                f"parallel={self.parallel})")


def load_environment(env_file: Optional[Union[str, Path]] = None) -> None:
    """Load a .env file into the process environment without overriding it."""
    if env_file is not None:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)


def resolve_config(email: Optional[str] = None, password: Optional[str] = None,
                   root: Union[str, Path] = ".", parallel: int = DEFAULT_PARALLEL_UPLOADS,
                   environ: Optional[Mapping[str, str]] = None,
                   password_prompt: Optional[Callable[[], str]] = None) -> SyncConfig:
    """
    Build a SyncConfig from explicit values and the environment.

    Raises:
        SetupError: If credentials are missing or root is not a directory
    """
    env = os.environ if environ is None else environ

    email = (email or env.get(ENV_EMAIL) or "").strip()
    if not email:
        raise SetupError(f"No email address given (argument or {ENV_EMAIL})")

    password = password or env.get(ENV_PASSWORD) or ""
    if not password and password_prompt is not None:
        password = password_prompt()
    if not password:
        raise SetupError(f"No password given (argument or {ENV_PASSWORD})")

    root_path = Path(root).expanduser().resolve()
    if not root_path.is_dir():
        raise SetupError(f"not a directory: {root_path}")

    if not 1 <= parallel <= MAX_PARALLEL_UPLOADS:
        raise SetupError(f"parallel must be between 1 and {MAX_PARALLEL_UPLOADS}")

    return SyncConfig(email=email, password=password, root=root_path, parallel=parallel)
