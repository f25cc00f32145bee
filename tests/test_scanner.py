"""Tests for the scan pipeline, using in-memory embedder and store doubles."""

import sys
import tempfile
import threading
import time
from pathlib import Path

import pytest

from codeatlas.chunking import LanguageRegistry
from codeatlas.config import ScanConfig
from codeatlas.embeddings import EmbeddingProvider
from codeatlas.errors import (
    ConfigurationError,
    EmbeddingError,
    EmbeddingFailed,
    ScanCancelled,
    StorageFailed,
)
from codeatlas.scanner import Scanner, ScanState, scan_codebase
from codeatlas.storage import ChunkStore

REGISTRY = LanguageRegistry()


class FakeEmbedder:
    """Returns [index, 1.0] for each chunk so positions can be checked."""

    model_name = "fake"

    def __init__(self, error=None, delay=0.0, on_call=None, vectors=None):
        self.calls = []
        self.error = error
        self.delay = delay
        self.on_call = on_call
        self.vectors = vectors

    def embed(self, chunks):
        self.calls.append(list(chunks))
        if self.on_call is not None:
            self.on_call()
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.vectors is not None:
            return self.vectors
        return [[float(i), 1.0] for i in range(len(chunks))]


class FakeStore:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def store_chunks(self, chunks, embeddings):
        self.calls.append((list(chunks), list(embeddings)))
        if self.error is not None:
            raise self.error


def write_repo(root: Path, files: dict) -> None:
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


VALID_FILES = {
    "app.py": "import os\n\n\ndef main():\n    return os.getcwd()\n\n\nclass App:\n    pass\n",
    "lib/math.rs": "fn add(a: i32, b: i32) -> i32 {\n    a + b\n}\n",
    "web/index.js": "function render() {\n  return 1;\n}\n",
    "README.md": "# Not code\n",
}


class TestScanner:
    """End-to-end scans over temporary trees."""

    def setup_method(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.embedder = FakeEmbedder()
        self.store = FakeStore()

    def teardown_method(self):
        self._tmp.cleanup()

    def make_scanner(self, **config):
        return Scanner(self.embedder, self.store, ScanConfig(**config), registry=REGISTRY)

    def test_fakes_satisfy_ports(self):
        assert isinstance(self.embedder, EmbeddingProvider)
        assert isinstance(self.store, ChunkStore)

    def test_scan_valid_tree(self):
        write_repo(self.root, VALID_FILES)
        scanner = self.make_scanner()

        result = scanner.scan(self.root)

        assert scanner.state is ScanState.DONE
        assert result.files_processed == 3
        assert result.files_skipped == 1
        assert result.files_failed == 0
        assert result.chunks_processed == result.embeddings_generated
        assert result.chunks_processed >= 3

        assert len(self.embedder.calls) == 1
        assert len(self.store.calls) == 1
        chunks, embeddings = self.store.calls[0]
        assert chunks == self.embedder.calls[0]
        # Embedding i belongs to chunk i
        assert [e[0] for e in embeddings] == [float(i) for i in range(len(chunks))]

    def test_bad_files_are_skipped(self):
        write_repo(self.root, {
            **VALID_FILES,
            "broken.py": "def broken(:\n",
            "binary.py": b"x = '\xff'\n",
        })
        scanner = self.make_scanner()

        result = scanner.scan(self.root)

        assert scanner.state is ScanState.DONE
        assert result.files_processed == 3
        assert result.files_failed == 2
        failed = {Path(path).name for path, _ in result.failures}
        assert failed == {"broken.py", "binary.py"}
        stored_files = {Path(c.file_path).name for c in self.store.calls[0][0]}
        assert stored_files == {"app.py", "math.rs", "index.js"}

    def test_chunks_follow_traversal_order(self):
        write_repo(self.root, VALID_FILES)
        scanner = self.make_scanner(workers=4)

        scanner.scan(self.root)

        chunk_files = []
        for chunk in self.store.calls[0][0]:
            if not chunk_files or chunk_files[-1] != chunk.file_path:
                chunk_files.append(chunk.file_path)
        walked = [str(p) for p in scanner.iter_files(self.root) if p.suffix != ".md"]
        assert chunk_files == walked

    def test_worker_count_does_not_change_output(self):
        files = {f"pkg/mod_{i}.py": f"def f{i}():\n    return {i}\n" for i in range(20)}
        write_repo(self.root, files)

        self.make_scanner(workers=1).scan(self.root)
        self.make_scanner(workers=8).scan(self.root)

        assert self.store.calls[0][0] == self.store.calls[1][0]

    def test_chunk_size_limit_applies(self):
        body = "\n".join(f"    value_{i} = {i}" for i in range(200))
        write_repo(self.root, {"big.py": f"def big():\n{body}\n"})

        result = self.make_scanner(max_chunk_size=256).scan(self.root)

        assert result.chunks_processed > 1
        assert all(c.size <= 256 for c in self.store.calls[0][0])

    def test_extension_filter(self):
        write_repo(self.root, VALID_FILES)

        result = self.make_scanner(extensions=frozenset({"py"})).scan(self.root)

        assert result.files_processed == 1
        assert {Path(c.file_path).name for c in self.store.calls[0][0]} == {"app.py"}

    def test_excluded_directories_are_pruned(self):
        write_repo(self.root, {
            "main.py": "def main():\n    pass\n",
            "node_modules/dep/index.js": "function dep() {}\n",
            ".git/hooks/hook.py": "def hook():\n    pass\n",
        })

        result = self.make_scanner().scan(self.root)

        assert result.files_processed == 1
        assert result.files_skipped == 0

    def test_empty_tree(self):
        scanner = self.make_scanner()

        result = scanner.scan(self.root)

        assert result.chunks_processed == 0
        assert result.embeddings_generated == 0
        assert self.embedder.calls == []
        assert self.store.calls == []
        assert scanner.state is ScanState.DONE

    def test_root_must_be_a_directory(self):
        with pytest.raises(ConfigurationError):
            self.make_scanner().scan(self.root / "missing")

    def test_scan_codebase_helper(self):
        write_repo(self.root, {"one.py": "def one():\n    return 1\n"})

        result = scan_codebase(self.root, self.embedder, self.store, ScanConfig(workers=2))

        assert result.chunks_processed == 1
        assert len(self.store.calls) == 1

    def test_store_receives_provider_vectors_unchanged(self):
        write_repo(self.root, VALID_FILES)

        class FractionalEmbedder(FakeEmbedder):
            def embed(self, chunks):
                self.returned = [[0.1 * (i + 1), 0.2, 1 / 3] for i in range(len(chunks))]
                return self.returned

        embedder = FractionalEmbedder()
        Scanner(embedder, self.store, registry=REGISTRY).scan(self.root)

        _, embeddings = self.store.calls[0]
        assert embeddings == embedder.returned
        assert embeddings[0][2] == 1 / 3

    @pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
    def test_symlinks_are_not_followed(self):
        write_repo(self.root, {
            "real/main.py": "def main():\n    pass\n",
            "outside/other.py": "def other():\n    pass\n",
        })
        inner = self.root / "inner"
        inner.mkdir()
        (inner / "linked").symlink_to(self.root / "outside", target_is_directory=True)
        (self.root / "dangling.py").symlink_to(self.root / "missing.py")

        scanner = self.make_scanner()
        walked = [p.relative_to(self.root).as_posix() for p in scanner.iter_files(self.root)]
        result = scanner.scan(self.root)

        assert walked == ["outside/other.py", "real/main.py"]
        assert result.files_processed == 2
        assert result.files_failed == 0


class TestScannerFailures:
    """Batch stage failures abort the run."""

    def setup_method(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        write_repo(self.root, VALID_FILES)

    def teardown_method(self):
        self._tmp.cleanup()

    def test_embedding_failure_skips_storage(self):
        embedder = FakeEmbedder(error=RuntimeError("model offline"))
        store = FakeStore()
        scanner = Scanner(embedder, store, registry=REGISTRY)

        with pytest.raises(EmbeddingFailed) as exc_info:
            scanner.scan(self.root)

        assert store.calls == []
        assert scanner.state is ScanState.FAILED
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.stage == "embedding"

    def test_wrong_embedding_count(self):
        embedder = FakeEmbedder(vectors=[[1.0, 2.0]])
        store = FakeStore()
        scanner = Scanner(embedder, store, registry=REGISTRY)

        with pytest.raises(EmbeddingFailed) as exc_info:
            scanner.scan(self.root)

        assert isinstance(exc_info.value.__cause__, EmbeddingError)
        assert store.calls == []

    def test_ragged_embeddings(self):
        write_repo(self.root, {"extra.py": "def extra():\n    pass\n"})
        counting_store = FakeStore()
        Scanner(FakeEmbedder(), counting_store, registry=REGISTRY).scan(self.root)
        count = len(counting_store.calls[0][0])
        vectors = [[1.0, 2.0]] * (count - 1) + [[1.0]]

        store = FakeStore()
        with pytest.raises(EmbeddingFailed):
            Scanner(FakeEmbedder(vectors=vectors), store, registry=REGISTRY).scan(self.root)
        assert store.calls == []

    def test_storage_failure(self):
        store = FakeStore(error=ConnectionError("database is down"))
        scanner = Scanner(FakeEmbedder(), store, registry=REGISTRY)

        with pytest.raises(StorageFailed) as exc_info:
            scanner.scan(self.root)

        assert scanner.state is ScanState.FAILED
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.stage == "storage"


class TestScannerCancellation:
    """Cancellation and timeouts stop the run with ScanCancelled."""

    def setup_method(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        write_repo(self.root, VALID_FILES)

    def teardown_method(self):
        self._tmp.cleanup()

    def test_cancelled_before_start(self):
        embedder = FakeEmbedder()
        scanner = Scanner(embedder, FakeStore(), registry=REGISTRY)
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ScanCancelled) as exc_info:
            scanner.scan(self.root, cancel_event=cancel)

        assert exc_info.value.stage == "scanning"
        assert embedder.calls == []
        assert scanner.state is ScanState.CANCELLED

    def test_cancelled_while_files_are_processing(self):
        write_repo(self.root, {f"pkg/mod_{i}.py": f"def f{i}():\n    pass\n" for i in range(20)})
        cancel = threading.Event()
        embedder = FakeEmbedder()
        scanner = Scanner(embedder, FakeStore(), ScanConfig(workers=2), registry=REGISTRY)

        started = []
        process_path = scanner.processor.process_path

        def slow_process_path(path):
            started.append(path)
            cancel.set()
            time.sleep(0.2)
            return process_path(path)

        scanner.processor.process_path = slow_process_path

        with pytest.raises(ScanCancelled) as exc_info:
            scanner.scan(self.root, cancel_event=cancel)

        assert exc_info.value.stage == "scanning"
        assert scanner.state is ScanState.CANCELLED
        assert embedder.calls == []
        # Queued files are dropped once the run is cancelled
        time.sleep(0.5)
        assert len(started) < 20

    def test_cancelled_during_embedding(self):
        cancel = threading.Event()
        embedder = FakeEmbedder(on_call=cancel.set, delay=0.5)
        store = FakeStore()
        scanner = Scanner(embedder, store, registry=REGISTRY)

        with pytest.raises(ScanCancelled) as exc_info:
            scanner.scan(self.root, cancel_event=cancel)

        assert exc_info.value.stage == "embedding"
        assert exc_info.value.reason == "cancelled"
        assert store.calls == []
        assert scanner.state is ScanState.CANCELLED

    def test_timeout(self):
        embedder = FakeEmbedder(delay=2.0)
        store = FakeStore()
        scanner = Scanner(embedder, store, registry=REGISTRY)

        start = time.monotonic()
        with pytest.raises(ScanCancelled) as exc_info:
            scanner.scan(self.root, timeout=0.3)

        assert time.monotonic() - start < 1.5
        assert exc_info.value.reason == "timed out"
        assert store.calls == []

    def test_unset_event_completes(self):
        store = FakeStore()
        scanner = Scanner(FakeEmbedder(), store, registry=REGISTRY)

        result = scanner.scan(self.root, cancel_event=threading.Event(), timeout=30)

        assert result.files_processed == 3
        assert len(store.calls) == 1

    def test_invalid_timeout(self):
        scanner = Scanner(FakeEmbedder(), FakeStore(), registry=REGISTRY)
        with pytest.raises(ConfigurationError):
            scanner.scan(self.root, timeout=0)
