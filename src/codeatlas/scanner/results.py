"""Scan run states and results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from codeatlas.chunking.chunk import Chunk
from codeatlas.errors import FileProcessingError


class ScanState(Enum):
    """Lifecycle of one scan run.

    IDLE -> SCANNING -> EMBEDDING -> STORING -> DONE

    FAILED is only entered from EMBEDDING or STORING: file-level problems
    during SCANNING degrade the result instead of failing the run.
    CANCELLED can be entered from any running state.
    """

    IDLE = "idle"
    SCANNING = "scanning"
    EMBEDDING = "embedding"
    STORING = "storing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FileOutcome:
    """What processing one file produced: chunks, a skip, or an error."""

    path: str
    chunks: list[Chunk] = field(default_factory=list)
    error: Optional[FileProcessingError] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


@dataclass(frozen=True)
class ScanResult:
    """Summary of a completed scan run."""

    chunks_processed: int
    embeddings_generated: int
    files_processed: int = 0
    files_failed: int = 0
    files_skipped: int = 0

    # (path, reason) for every file that failed to read or parse
    failures: tuple[tuple[str, str], ...] = ()
