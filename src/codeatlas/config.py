"""Scan configuration and environment-driven settings.

Usage:
    from codeatlas.config import ScanConfig, load_settings

    config = ScanConfig(max_chunk_size=2048, workers=4)
    settings = load_settings()   # reads CODEATLAS_* environment variables
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from codeatlas.errors import ConfigurationError

DEFAULT_MAX_CHUNK_SIZE = 4096
# A UTF-8 character is at most 4 bytes; smaller limits cannot always be met.
MIN_CHUNK_SIZE = 4
DEFAULT_DB_PATH = "./codeatlas_db"
DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_COLLECTION = "codeatlas"

DEFAULT_EXCLUDE_DIRS = frozenset({
    ".git",
    ".hg",
    ".svn",
    "__pycache__",
    "node_modules",
})

EMBEDDER_CHOICES = ("codebert", "ollama", "openai")


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lower-case extensions and give each a leading dot ("PY" -> ".py")."""
    normalized = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(normalized)


@dataclass(frozen=True)
class ScanConfig:
    """Options for one scan run.

    Attributes:
        max_chunk_size: Upper bound on chunk size in bytes. None disables
            splitting below top-level semantic units.
        workers: Size of the file-processing thread pool
            (default: os.cpu_count()).
        extensions: Only scan files with these extensions, if given.
        exclude_dirs: Directory names pruned from the walk.
    """

    max_chunk_size: Optional[int] = DEFAULT_MAX_CHUNK_SIZE
    workers: Optional[int] = None
    extensions: Optional[frozenset[str]] = None
    exclude_dirs: frozenset[str] = field(default=DEFAULT_EXCLUDE_DIRS)

    def __post_init__(self):
        if self.max_chunk_size is not None:
            if isinstance(self.max_chunk_size, bool) or not isinstance(self.max_chunk_size, int):
                raise ConfigurationError(
                    f"max_chunk_size must be an integer, got {self.max_chunk_size!r}"
                )
            if self.max_chunk_size < MIN_CHUNK_SIZE:
                raise ConfigurationError(
                    f"max_chunk_size must be at least {MIN_CHUNK_SIZE} bytes, got {self.max_chunk_size}"
                )
        if self.workers is not None and self.workers <= 0:
            raise ConfigurationError(f"workers must be positive, got {self.workers}")

        # frozen dataclass: normalise through object.__setattr__
        if self.extensions is not None:
            object.__setattr__(self, "extensions", normalize_extensions(self.extensions))
        object.__setattr__(self, "exclude_dirs", frozenset(self.exclude_dirs))

    @property
    def max_workers(self) -> int:
        return self.workers or os.cpu_count() or 1


@dataclass(frozen=True)
class Settings:
    """Backend settings shared by the CLI and the adapters."""

    db_path: str = DEFAULT_DB_PATH
    embedder: str = "codebert"
    model: Optional[str] = None
    ollama_host: str = DEFAULT_OLLAMA_HOST
    openai_api_key: Optional[str] = field(default=None, repr=False)
    timeout: Optional[float] = None


def load_settings(environ: Optional[dict] = None) -> Settings:
    """
    Build Settings from environment variables.

    Recognised variables:
        CODEATLAS_DB_PATH   Vector database directory
        CODEATLAS_EMBEDDER  "codebert" (local transformers), "ollama" or "openai"
        CODEATLAS_MODEL     Model name override for the embedder
        OLLAMA_HOST         Ollama server URL
        OPENAI_API_KEY      API key for the "openai" embedder
        CODEATLAS_TIMEOUT   Run timeout in seconds

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    env = os.environ if environ is None else environ

    embedder = env.get("CODEATLAS_EMBEDDER", "codebert").strip().lower()
    if embedder not in EMBEDDER_CHOICES:
        raise ConfigurationError(
            f"CODEATLAS_EMBEDDER must be one of {', '.join(EMBEDDER_CHOICES)}, got {embedder!r}"
        )

    timeout = None
    raw_timeout = env.get("CODEATLAS_TIMEOUT")
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigurationError(f"CODEATLAS_TIMEOUT is not a number: {raw_timeout!r}") from None
        if timeout <= 0:
            raise ConfigurationError(f"CODEATLAS_TIMEOUT must be positive, got {timeout}")

    return Settings(
        db_path=env.get("CODEATLAS_DB_PATH", DEFAULT_DB_PATH),
        embedder=embedder,
        model=env.get("CODEATLAS_MODEL") or None,
        ollama_host=env.get("OLLAMA_HOST", DEFAULT_OLLAMA_HOST),
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        timeout=timeout,
    )


def collection_name_for(path: Path | str) -> str:
    """
    Derive a vector collection name from a repository root.

    ChromaDB names must be 3-63 characters of [a-zA-Z0-9._-] and start and
    end with an alphanumeric character.
    """
    name = Path(path).resolve().name
    name = re.sub(r"[^a-zA-Z0-9._-]+", "-", name)
    name = name.strip("._-")[:63].rstrip("._-")
    if len(name) < 3:
        return DEFAULT_COLLECTION
    return name
