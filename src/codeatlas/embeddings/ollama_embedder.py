"""Embeddings from an Ollama server."""

import logging
from typing import Optional, Sequence

import ollama

from codeatlas.chunking.chunk import Chunk
from codeatlas.config import DEFAULT_OLLAMA_HOST
from codeatlas.embeddings.base import Embedding
from codeatlas.errors import EmbeddingError

logger = logging.getLogger(__name__)


class OllamaEmbedder:
    """Embedding provider backed by Ollama's /api/embed endpoint."""

    DEFAULT_MODEL = "nomic-embed-text"

    def __init__(
        self,
        model: Optional[str] = None,
        host: str = DEFAULT_OLLAMA_HOST,
        batch_size: int = 512,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            model: Ollama embedding model (default: nomic-embed-text)
            host: Ollama server URL
            batch_size: Chunks sent per request
            timeout: Per-request timeout in seconds
        """
        self._model = model or self.DEFAULT_MODEL
        self.batch_size = batch_size
        self._client = ollama.Client(host=host, timeout=timeout)

    @property
    def model_name(self) -> str:
        return self._model

    def embed(self, chunks: Sequence[Chunk]) -> list[Embedding]:
        """
        Embed chunks in batches.

        Raises:
            EmbeddingError: If the server returns the wrong number of vectors
            ollama.ResponseError: On server-side failures
        """
        embeddings: list[Embedding] = []

        for i in range(0, len(chunks), self.batch_size):
            batch = chunks[i:i + self.batch_size]
            response = self._client.embed(
                model=self._model,
                input=[chunk.text for chunk in batch],
            )
            vectors = response["embeddings"]
            if len(vectors) != len(batch):
                raise EmbeddingError(
                    f"Ollama returned {len(vectors)} embeddings for {len(batch)} chunks"
                )
            embeddings.extend(list(v) for v in vectors)

        logger.debug("Generated %d embeddings with Ollama", len(embeddings))
        return embeddings
