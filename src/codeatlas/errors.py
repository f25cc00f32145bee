"""Exception hierarchy for codeatlas.

Two families matter to the scan pipeline:

    FileProcessingError: one file could not be read or parsed. Recoverable:
        The scanner logs it and moves on.
    ScanFailed: the embedding or storage batch failed. Fatal:
        The run aborts and the error reaches the caller.

ScanCancelled is neither; it reports a run stopped by the caller.
"""

from typing import Optional


class CodeAtlasError(Exception):
    """Base class for all codeatlas errors."""


class ConfigurationError(CodeAtlasError, ValueError):
    """Invalid configuration, rejected before any scanning begins."""


class FileProcessingError(CodeAtlasError):
    """A single file could not be turned into chunks."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class FileReadError(FileProcessingError):
    """File is unreadable or not valid UTF-8."""


class ParsingFailed(FileProcessingError):
    """Parser produced no tree, or a tree with syntax errors."""

    def __init__(self, path: str, reason: str = "failed to parse file"):
        super().__init__(path, reason)


class EmbeddingError(CodeAtlasError):
    """An embedding provider returned an unusable response."""


class StorageError(CodeAtlasError):
    """A chunk store rejected a batch."""


class ScanFailed(CodeAtlasError):
    """A batch stage failed and the run was aborted."""

    stage = "scan"

    def __init__(self, message: str, stage: Optional[str] = None):
        if stage is not None:
            self.stage = stage
        super().__init__(f"{self.stage} stage failed: {message}")


class EmbeddingFailed(ScanFailed):
    stage = "embedding"


class StorageFailed(ScanFailed):
    stage = "storage"


class ScanCancelled(CodeAtlasError):
    """The run was cancelled or timed out before it completed."""

    def __init__(self, stage: str, reason: str = "cancelled"):
        super().__init__(f"scan {reason} during {stage} stage")
        self.stage = stage
        self.reason = reason
