"""Parser Module — Reads source files and hands their syntax trees to the chunker.

Each file goes through:
    1. Extension lookup in the LanguageRegistry (unsupported files are skipped)
    2. A strict UTF-8 read
    3. A tree-sitter parse with a per-thread parser
    4. Chunk extraction

Usage:
    from codeatlas.chunking import LanguageRegistry
    from codeatlas.parser import FileProcessor

    processor = FileProcessor(LanguageRegistry(), max_chunk_size=4096)
    chunks = processor.process_path(Path("app/models.py"))
"""

from codeatlas.parser.processor import FileProcessor

__all__ = ["FileProcessor"]
