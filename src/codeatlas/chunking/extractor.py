"""Syntax-aware chunk extraction from tree-sitter trees."""

import logging
from typing import Optional

from tree_sitter import Node, Tree

from codeatlas.chunking.chunk import Chunk
from codeatlas.chunking.languages import Language
from codeatlas.chunking.source import SourceFile
from codeatlas.config import MIN_CHUNK_SIZE
from codeatlas.errors import ConfigurationError

logger = logging.getLogger(__name__)

_JS_UNITS = frozenset({
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "method_definition",
    "export_statement",
})

_TS_UNITS = _JS_UNITS | {
    "abstract_class_declaration",
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
}

# Node types that form a complete, independently meaningful unit per language
UNIT_NODE_TYPES: dict[Language, frozenset[str]] = {
    Language.PYTHON: frozenset({
        "function_definition",
        "class_definition",
        "decorated_definition",
    }),
    Language.JAVA: frozenset({
        "class_declaration",
        "interface_declaration",
        "enum_declaration",
        "record_declaration",
        "method_declaration",
        "constructor_declaration",
    }),
    Language.GO: frozenset({
        "function_declaration",
        "method_declaration",
        "type_declaration",
    }),
    Language.RUST: frozenset({
        "function_item",
        "struct_item",
        "enum_item",
        "impl_item",
        "trait_item",
        "mod_item",
        "macro_definition",
    }),
    Language.JAVASCRIPT: _JS_UNITS,
    Language.TYPESCRIPT: _TS_UNITS,
    Language.TSX: _TS_UNITS,
}

GROUP_NODE_TYPE = "block"

_WHITESPACE = frozenset(b" \t\r\n\f\v")


class ChunkExtractor:
    """
    Split a parsed file into chunks along syntactic boundaries.

    Semantic units (functions, classes, ...) become one chunk each when they
    fit within `max_chunk_size` bytes. Oversized nodes are split by
    recursing into their children; a leaf that is still too large is cut
    into line-aligned slices.

    Loose material between units (imports, comments, top-level statements)
    is attached to the unit that follows it when the combined span fits,
    and otherwise packed into "block" chunks of its own.

    With max_chunk_size=None only top-level units are split out and
    nothing is ever sliced.
    """

    def __init__(self, max_chunk_size: Optional[int] = None):
        if max_chunk_size is not None and max_chunk_size < MIN_CHUNK_SIZE:
            raise ConfigurationError(
                f"max_chunk_size must be at least {MIN_CHUNK_SIZE} bytes, got {max_chunk_size}"
            )
        self.max_chunk_size = max_chunk_size

    def extract(self, tree: Tree, source: SourceFile) -> list[Chunk]:
        """
        Extract chunks from a parse tree.

        Args:
            tree: tree-sitter tree parsed from `source.content`
            source: The file the tree was parsed from

        Returns:
            Chunks in source order, non-overlapping
        """
        extraction = _Extraction(
            source=source,
            unit_types=UNIT_NODE_TYPES[source.language],
            limit=self.max_chunk_size,
        )
        root = tree.root_node
        if root.child_count > 0 and extraction.children_cover(root):
            extraction.split_level(root.children)
        else:
            extraction.fit_node(root)
        logger.debug("Extracted %d chunks from %s", len(extraction.chunks), source.path)
        return extraction.chunks


class _Extraction:
    """State for one extract() call; never shared between files."""

    def __init__(self, source: SourceFile, unit_types: frozenset[str], limit: Optional[int]):
        self.source = source
        self.unit_types = unit_types
        self.limit = limit
        self.chunks: list[Chunk] = []

    def fits(self, start: int, end: int) -> bool:
        return self.limit is None or end - start <= self.limit

    # ── Level traversal ────────────────────────────────────────

    def split_level(self, siblings: list[Node]) -> None:
        """Emit chunks for a run of sibling nodes, in source order."""
        pending: list[Node] = []

        for node in siblings:
            if node.type not in self.unit_types:
                pending.append(node)
                continue

            if pending and self.fits(pending[0].start_byte, node.end_byte):
                # Loose material rides along with the unit that follows it
                self.emit(pending[0].start_byte, node.end_byte, node.type, self.unit_name(node))
            else:
                if pending:
                    self.pack(pending)
                self.fit_node(node)
            pending = []

        if pending:
            self.pack(pending)

    def fit_node(self, node: Node) -> None:
        """Emit a node whole if it fits, otherwise split it."""
        if self.fits(node.start_byte, node.end_byte):
            self.emit(node.start_byte, node.end_byte, node.type, self.unit_name(node))
        elif node.child_count > 0 and self.children_cover(node):
            self.split_level(node.children)
        else:
            self.slice_lines(node.start_byte, node.end_byte, f"{node.type}_part")

    def children_cover(self, node: Node) -> bool:
        """
        True if every non-whitespace byte of `node` lies inside a child.

        Grammars hide some tokens (Python string content, for one), so a
        node's children can leave text uncovered; such nodes are sliced
        as a whole instead of being split into children.
        """
        pos = node.start_byte
        for child in node.children:
            if not self._blank(pos, child.start_byte):
                return False
            pos = max(pos, child.end_byte)
        return self._blank(pos, node.end_byte)

    def _blank(self, start: int, end: int) -> bool:
        return all(byte in _WHITESPACE for byte in self.source.content[start:end])

    def pack(self, nodes: list[Node]) -> None:
        """Greedily group consecutive loose nodes into chunks that fit."""
        group: list[Node] = []

        for node in nodes:
            if not self.fits(node.start_byte, node.end_byte):
                self._flush_group(group)
                group = []
                self.fit_node(node)
            elif group and not self.fits(group[0].start_byte, node.end_byte):
                self._flush_group(group)
                group = [node]
            else:
                group.append(node)

        self._flush_group(group)

    def _flush_group(self, group: list[Node]) -> None:
        if not group:
            return
        if len(group) == 1:
            node = group[0]
            self.emit(node.start_byte, node.end_byte, node.type, self.unit_name(node))
        else:
            self.emit(group[0].start_byte, group[-1].end_byte, GROUP_NODE_TYPE)

    # ── Fallback slicing ───────────────────────────────────────

    def slice_lines(self, start: int, end: int, node_type: str) -> None:
        """
        Cut [start, end) into consecutive slices of at most `limit` bytes.

        Slices end on line boundaries; a single line longer than the limit
        is cut at the last UTF-8 character boundary that fits.
        """
        content = self.source.content
        limit = self.limit
        piece_start = pos = start

        while pos < end:
            newline = content.find(b"\n", pos, end)
            line_end = end if newline == -1 else newline + 1

            if line_end - piece_start <= limit:
                pos = line_end
            elif pos > piece_start:
                self.emit(piece_start, pos, node_type)
                piece_start = pos
            else:
                cut = _char_boundary(content, piece_start, piece_start + limit)
                self.emit(piece_start, cut, node_type)
                piece_start = pos = cut

        if piece_start < end:
            self.emit(piece_start, end, node_type)

    # ── Chunk construction ─────────────────────────────────────

    def emit(self, start: int, end: int, node_type: str, name: Optional[str] = None) -> None:
        """Append a chunk for [start, end), trimmed of surrounding whitespace."""
        content = self.source.content
        while start < end and content[start] in _WHITESPACE:
            start += 1
        while end > start and content[end - 1] in _WHITESPACE:
            end -= 1
        if start >= end:
            return

        self.chunks.append(Chunk(
            file_path=self.source.path,
            language=self.source.language.tag,
            start_byte=start,
            end_byte=end,
            start_line=self.source.line_of(start),
            end_line=self.source.line_of(end - 1),
            text=self.source.slice(start, end),
            node_type=node_type,
            name=name,
        ))

    def unit_name(self, node: Node) -> Optional[str]:
        """Identifier of a definition node, if its grammar exposes one."""
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            return self.source.slice(name_node.start_byte, name_node.end_byte)

        # decorated_definition / export_statement wrap the real definition
        for field_name in ("definition", "declaration"):
            inner = node.child_by_field_name(field_name)
            if inner is not None:
                return self.unit_name(inner)

        # Rust impl blocks are named by the type they implement
        if node.type == "impl_item":
            type_node = node.child_by_field_name("type")
            if type_node is not None:
                return self.source.slice(type_node.start_byte, type_node.end_byte)
        return None


def _char_boundary(content: bytes, lower: int, index: int) -> int:
    """Largest UTF-8 character boundary in (lower, index]."""
    while index > lower + 1 and (content[index] & 0xC0) == 0x80:
        index -= 1
    return index


def extract_chunks(
    tree: Tree,
    source: SourceFile,
    max_chunk_size: Optional[int] = None,
) -> list[Chunk]:
    """Convenience function: extract chunks with a one-off extractor."""
    return ChunkExtractor(max_chunk_size).extract(tree, source)
