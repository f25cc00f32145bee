"""Per-file processing: read, detect language, parse and chunk."""

import logging
import threading
from pathlib import Path
from typing import Optional

from tree_sitter import Node, Parser

from codeatlas.chunking.chunk import Chunk
from codeatlas.chunking.extractor import ChunkExtractor
from codeatlas.chunking.languages import Language, LanguageRegistry
from codeatlas.chunking.source import SourceFile
from codeatlas.errors import FileReadError, ParsingFailed

logger = logging.getLogger(__name__)


class FileProcessor:
    """
    Turn one source file into chunks.

    Failures are raised as FileProcessingError subclasses (FileReadError,
    ParsingFailed) so the caller can skip the file and carry on.

    Parsers hold mutable state, so each thread gets its own parser per
    language; the registry and extractor are shared read-only.
    """

    def __init__(self, registry: LanguageRegistry, max_chunk_size: Optional[int] = None):
        self.registry = registry
        self.extractor = ChunkExtractor(max_chunk_size)
        self._local = threading.local()

    def _get_parser(self, language: Language) -> Parser:
        """Return this thread's parser for a language, creating it on first use."""
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}

        parser = parsers.get(language)
        if parser is None:
            parser = Parser(self.registry.grammar(language))
            parsers[language] = parser
        return parser

    def process(self, path: str, content: str, language: Language) -> list[Chunk]:
        """
        Parse text and extract its chunks.

        Args:
            path: Path recorded on each chunk
            content: Source text
            language: Language to parse the text as

        Returns:
            Chunks in source order

        Raises:
            ParsingFailed: If the text does not parse cleanly
        """
        return self.process_source(SourceFile.from_text(str(path), content, language))

    def process_source(self, source: SourceFile) -> list[Chunk]:
        """Parse an already-loaded SourceFile and extract its chunks."""
        tree = self._get_parser(source.language).parse(source.content)
        if tree is None:
            raise ParsingFailed(source.path, "parser returned no tree")

        root = tree.root_node
        if root.has_error:
            error_node = _first_error(root)
            line = error_node.start_point[0] + 1 if error_node is not None else 1
            raise ParsingFailed(source.path, f"syntax error at line {line}")

        return self.extractor.extract(tree, source)

    def read_source(self, file_path: Path) -> Optional[SourceFile]:
        """
        Read a file for chunking.

        Returns:
            SourceFile, or None if the extension is not supported

        Raises:
            FileReadError: If the file cannot be read or is not UTF-8
        """
        language = self.registry.lookup(file_path.name)
        if language is None:
            return None

        try:
            with open(file_path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise FileReadError(str(file_path), e.strerror or str(e)) from e

        try:
            content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FileReadError(str(file_path), f"not valid UTF-8 (byte {e.start})") from e

        return SourceFile(path=str(file_path), content=content, language=language)

    def process_path(self, file_path: Path) -> Optional[list[Chunk]]:
        """
        Read, parse and chunk a file on disk.

        Returns:
            Chunks, or None if the file type is not supported

        Raises:
            FileProcessingError: If the file cannot be read or parsed
        """
        source = self.read_source(file_path)
        if source is None:
            return None
        chunks = self.process_source(source)
        logger.debug("%s: %d chunks", file_path, len(chunks))
        return chunks


def _first_error(node: Node) -> Optional[Node]:
    """Depth-first search for the first ERROR or MISSING node."""
    if node.is_error or node.is_missing:
        return node
    for child in node.children:
        if child.has_error or child.is_missing:
            found = _first_error(child)
            if found is not None:
                return found
    return None
