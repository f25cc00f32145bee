"""Chunk data model."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Chunk:
    """A contiguous, size-bounded slice of one source file."""

    file_path: str
    language: str
    start_byte: int  # inclusive
    end_byte: int    # exclusive
    start_line: int  # 1-indexed
    end_line: int
    text: str
    node_type: str

    # Identifier of the unit (function/class name), when the grammar has one
    name: Optional[str] = None

    @property
    def size(self) -> int:
        """Size of the chunk in bytes."""
        return self.end_byte - self.start_byte

    @property
    def chunk_id(self) -> str:
        """Stable identifier: the same file content always yields the same ids."""
        return f"{self.file_path}::{self.start_byte}-{self.end_byte}"

    def to_dict(self) -> dict:
        """Convert to dictionary for ChromaDB metadata."""
        return {
            "file_path": self.file_path,
            "language": self.language,
            "node_type": self.node_type,
            "name": self.name or "",  # ChromaDB rejects None values
            "start_byte": self.start_byte,
            "end_byte": self.end_byte,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }
