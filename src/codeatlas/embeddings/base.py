"""Protocol for embedding providers."""

from typing import Protocol, Sequence, runtime_checkable

from codeatlas.chunking.chunk import Chunk

Embedding = list[float]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding model providers.

    Allows swapping between a local transformers model (CodeBERT), an
    Ollama server, or a test double. Structural subtyping: no inheritance
    required.
    """

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        ...

    def embed(self, chunks: Sequence[Chunk]) -> list[Embedding]:
        """Generate one embedding per chunk.

        Returns: list with the same length and order as `chunks`
        """
        ...
