"""Scan pipeline: traverse -> parse -> chunk -> embed -> store."""

import logging
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

import numpy as np

from codeatlas.chunking.chunk import Chunk
from codeatlas.chunking.languages import LanguageRegistry
from codeatlas.config import ScanConfig
from codeatlas.embeddings.base import Embedding, EmbeddingProvider
from codeatlas.errors import (
    ConfigurationError,
    EmbeddingError,
    EmbeddingFailed,
    FileProcessingError,
    ParsingFailed,
    ScanCancelled,
    ScanFailed,
    StorageFailed,
)
from codeatlas.parser.processor import FileProcessor
from codeatlas.scanner.results import FileOutcome, ScanResult, ScanState
from codeatlas.storage.base import ChunkStore

logger = logging.getLogger(__name__)

# How often waits wake up to check for cancellation (seconds)
_POLL_INTERVAL = 0.05


class Scanner:
    """
    Index a source tree: extract chunks from every supported file, embed
    them in one batch and store them in one batch.

    Failure handling differs by stage:
        - A file that cannot be read or parsed is logged and skipped.
        - An embedding or storage failure aborts the run (ScanFailed).

    Usage:
        scanner = Scanner(CodeBertEmbedder(), ChromaChunkStore())
        result = scanner.scan(Path("./my_repo"))
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: ChunkStore,
        config: Optional[ScanConfig] = None,
        registry: Optional[LanguageRegistry] = None,
    ):
        """
        Args:
            embedder: Embedding port
            store: Storage port
            config: Scan options (default: ScanConfig())
            registry: Language registry (default: every supported language)
        """
        self.embedder = embedder
        self.store = store
        self.config = config or ScanConfig()
        self.registry = registry or LanguageRegistry()
        self.processor = FileProcessor(self.registry, self.config.max_chunk_size)
        self.state = ScanState.IDLE

    def _set_state(self, state: ScanState) -> None:
        logger.debug("Scan state: %s -> %s", self.state.value, state.value)
        self.state = state

    # ── Traversal ──────────────────────────────────────────────

    def iter_files(self, root: Path) -> Iterator[Path]:
        """
        Yield regular files under root in a deterministic order.

        Directory symlinks are not followed; unreadable directories and
        broken links are skipped without error.
        """
        exclude_dirs = self.config.exclude_dirs
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in exclude_dirs)
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if path.is_file():
                    yield path

    def _wanted(self, path: Path) -> bool:
        extensions = self.config.extensions
        return extensions is None or path.suffix.lower() in extensions

    def _process_file(self, path: Path) -> FileOutcome:
        """Worker: turn one file into a FileOutcome. Never raises for bad input."""
        if not self._wanted(path):
            return FileOutcome(path=str(path), skipped=True)
        try:
            chunks = self.processor.process_path(path)
        except FileProcessingError as e:
            return FileOutcome(path=str(path), error=e)
        except RecursionError:
            return FileOutcome(path=str(path), error=ParsingFailed(str(path), "syntax tree too deep"))

        if chunks is None:
            return FileOutcome(path=str(path), skipped=True)
        return FileOutcome(path=str(path), chunks=chunks)

    def _scan_files(
        self,
        root: Path,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
    ) -> list[FileOutcome]:
        """Process every file on the worker pool; outcomes in traversal order."""
        executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="codeatlas-scan",
        )
        try:
            futures = []
            for path in self.iter_files(root):
                self._check_cancelled("scanning", cancel_event, deadline)
                futures.append(executor.submit(self._process_file, path))

            self._wait(futures, "scanning", cancel_event, deadline)
            return [future.result() for future in futures]
        finally:
            # No-op after a normal finish; drops queued files on cancellation
            executor.shutdown(wait=False, cancel_futures=True)

    # ── Cancellation ───────────────────────────────────────────

    @staticmethod
    def _check_cancelled(
        stage: str,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ScanCancelled(stage, "cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            raise ScanCancelled(stage, "timed out")

    def _wait(
        self,
        futures: Sequence[Future],
        stage: str,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        """Block until all futures finish, raising ScanCancelled if asked to stop."""
        pending = set(futures)
        if cancel_event is None and deadline is None:
            wait(pending)
            return

        while pending:
            self._check_cancelled(stage, cancel_event, deadline)
            timeout = _POLL_INTERVAL
            if deadline is not None:
                timeout = max(0.0, min(timeout, deadline - time.monotonic()))
            _, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)

    # ── Batch stages ───────────────────────────────────────────

    def _embed(self, chunks: list[Chunk]) -> list[Embedding]:
        """Call the embedding port and check the shape of what comes back."""
        embeddings = self.embedder.embed(chunks)
        if len(embeddings) != len(chunks):
            raise EmbeddingError(
                f"Expected {len(chunks)} embeddings, got {len(embeddings)}"
            )

        try:
            matrix = np.asarray(embeddings, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Embeddings are not fixed-length numeric vectors: {e}") from e
        if matrix.ndim != 2 or matrix.shape[1] == 0:
            raise EmbeddingError(f"Embeddings have unexpected shape {matrix.shape}")
        if not np.isfinite(matrix).all():
            raise EmbeddingError("Embeddings contain NaN or infinite values")

        # Hand on the provider's own vectors; the array is only for checking
        return [list(vector) for vector in embeddings]

    def _run_stage(
        self,
        stage: str,
        failure: type[ScanFailed],
        func: Callable,
        args: tuple,
        cancel_event: Optional[threading.Event],
        deadline: Optional[float],
    ):
        """Run one batch call; any exception it raises becomes `failure`."""
        self._check_cancelled(stage, cancel_event, deadline)

        if cancel_event is None and deadline is None:
            try:
                return func(*args)
            except Exception as e:
                raise failure(str(e) or type(e).__name__) from e

        # Run on a helper thread so the wait can honour cancellation. The call
        # itself cannot be interrupted; its result is dropped if we stop waiting.
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"codeatlas-{stage}")
        try:
            future = executor.submit(func, *args)
            self._wait([future], stage, cancel_event, deadline)
            try:
                return future.result()
            except Exception as e:
                raise failure(str(e) or type(e).__name__) from e
        finally:
            executor.shutdown(wait=False)

    # ── Entry point ────────────────────────────────────────────

    def scan(
        self,
        root: Path | str,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> ScanResult:
        """
        Scan a source tree and store its chunks.

        Args:
            root: Directory to index
            cancel_event: Set it from another thread to stop the run
            timeout: Seconds the whole run may take

        Returns:
            Counts for the run

        Raises:
            ConfigurationError: If root is not a directory
            EmbeddingFailed: If the embedding batch fails (nothing is stored)
            StorageFailed: If the storage batch fails
            ScanCancelled: If cancelled or timed out
        """
        root = Path(root)
        if not root.is_dir():
            raise ConfigurationError(f"Not a directory: {root}")
        if timeout is not None and timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {timeout}")

        deadline = time.monotonic() + timeout if timeout is not None else None
        self._set_state(ScanState.SCANNING)
        logger.info("Scanning %s", root)

        try:
            outcomes = self._scan_files(root, cancel_event, deadline)
        except ScanCancelled:
            self._set_state(ScanState.CANCELLED)
            raise

        chunks: list[Chunk] = []
        failures: list[tuple[str, str]] = []
        files_processed = files_skipped = 0
        for outcome in outcomes:
            if outcome.ok:
                files_processed += 1
                chunks.extend(outcome.chunks)
            elif outcome.skipped:
                files_skipped += 1
            else:
                logger.warning("Skipping %s", outcome.error)
                failures.append((outcome.path, outcome.error.reason))

        logger.info(
            "Extracted %d chunks from %d files (%d failed, %d skipped)",
            len(chunks), files_processed, len(failures), files_skipped,
        )

        embeddings: list[Embedding] = []
        if chunks:
            try:
                self._set_state(ScanState.EMBEDDING)
                embeddings = self._run_stage(
                    "embedding", EmbeddingFailed, self._embed, (chunks,),
                    cancel_event, deadline,
                )
                logger.info("Generated %d embeddings", len(embeddings))

                self._set_state(ScanState.STORING)
                self._run_stage(
                    "storage", StorageFailed, self.store.store_chunks, (chunks, embeddings),
                    cancel_event, deadline,
                )
                logger.info("Stored %d chunks", len(chunks))
            except ScanCancelled:
                self._set_state(ScanState.CANCELLED)
                raise
            except ScanFailed:
                self._set_state(ScanState.FAILED)
                raise

        self._set_state(ScanState.DONE)
        return ScanResult(
            chunks_processed=len(chunks),
            embeddings_generated=len(embeddings),
            files_processed=files_processed,
            files_failed=len(failures),
            files_skipped=files_skipped,
            failures=tuple(failures),
        )


def scan_codebase(
    root: Path | str,
    embedder: EmbeddingProvider,
    store: ChunkStore,
    config: Optional[ScanConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    timeout: Optional[float] = None,
) -> ScanResult:
    """Convenience function: build a Scanner and run one scan."""
    scanner = Scanner(embedder, store, config=config)
    return scanner.scan(root, cancel_event=cancel_event, timeout=timeout)
