"""Protocol for chunk stores."""

from typing import Protocol, Sequence, runtime_checkable

from codeatlas.chunking.chunk import Chunk
from codeatlas.embeddings.base import Embedding


@runtime_checkable
class ChunkStore(Protocol):
    """Protocol for persisting (chunk, embedding) pairs.

    No partial-commit contract: a store either accepts the whole batch or
    raises.
    """

    def store_chunks(self, chunks: Sequence[Chunk], embeddings: Sequence[Embedding]) -> None:
        """Persist chunks[i] together with embeddings[i] for every i."""
        ...
