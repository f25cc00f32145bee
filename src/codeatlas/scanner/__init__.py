"""Scanner Module — Orchestrates traversal, parsing, embedding and storage.

Runs the whole ingestion pipeline for one source tree:
    1. Walk the tree and chunk every supported file (in parallel)
    2. Embed all chunks in one batch
    3. Store all (chunk, embedding) pairs in one batch

Usage:
    from codeatlas.scanner import Scanner

    scanner = Scanner(embedder, store, ScanConfig(max_chunk_size=4096))
    result = scanner.scan(Path("./my_repo"))
    print(result.chunks_processed, result.embeddings_generated)
"""

from codeatlas.scanner.results import FileOutcome, ScanResult, ScanState
from codeatlas.scanner.scanner import Scanner, scan_codebase

__all__ = ["FileOutcome", "ScanResult", "ScanState", "Scanner", "scan_codebase"]
