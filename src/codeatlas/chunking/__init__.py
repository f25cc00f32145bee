"""Chunking Module — Turns syntax trees into retrieval-sized chunks.

Supported languages:
    - Python, Java, Go, Rust
    - JavaScript, TypeScript, TSX

Each chunk carries:
    - File path and language tag
    - Byte range and 1-indexed line range
    - The raw source text of that range
    - The grammar category (and name) of the unit it came from

Usage:
    from codeatlas.chunking import ChunkExtractor, LanguageRegistry

    registry = LanguageRegistry()
    extractor = ChunkExtractor(max_chunk_size=2048)
    chunks = extractor.extract(tree, source)
"""

from codeatlas.chunking.chunk import Chunk
from codeatlas.chunking.extractor import UNIT_NODE_TYPES, ChunkExtractor, extract_chunks
from codeatlas.chunking.languages import Language, LanguageRegistry
from codeatlas.chunking.source import SourceFile

__all__ = [
    "Chunk",
    "ChunkExtractor",
    "Language",
    "LanguageRegistry",
    "SourceFile",
    "UNIT_NODE_TYPES",
    "extract_chunks",
]
