"""Embeddings from the OpenAI API."""

import logging
from typing import Optional, Sequence

from openai import OpenAI

from codeatlas.chunking.chunk import Chunk
from codeatlas.embeddings.base import Embedding
from codeatlas.errors import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)


class OpenAIEmbedder:
    """Embedding provider backed by OpenAI's embeddings endpoint."""

    DEFAULT_MODEL = "text-embedding-3-small"

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        batch_size: int = 20,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            model: OpenAI embedding model (default: text-embedding-3-small)
            api_key: API key (usually from OPENAI_API_KEY)
            batch_size: Chunks sent per request
            timeout: Per-request timeout in seconds
        """
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key not found. Set the OPENAI_API_KEY environment variable."
            )
        self._model = model or self.DEFAULT_MODEL
        self.batch_size = batch_size
        self._client = OpenAI(api_key=api_key, timeout=timeout)

    @property
    def model_name(self) -> str:
        return self._model

    def embed(self, chunks: Sequence[Chunk]) -> list[Embedding]:
        """
        Embed chunks in batches.

        Raises:
            EmbeddingError: If the API returns the wrong number of vectors
            openai.OpenAIError: On API failures
        """
        embeddings: list[Embedding] = []

        for i in range(0, len(chunks), self.batch_size):
            batch = chunks[i:i + self.batch_size]
            response = self._client.embeddings.create(
                model=self._model,
                input=[chunk.text for chunk in batch],
            )
            if len(response.data) != len(batch):
                raise EmbeddingError(
                    f"OpenAI returned {len(response.data)} embeddings for {len(batch)} chunks"
                )
            # The API tags each vector with the position of its input
            for item in sorted(response.data, key=lambda item: item.index):
                embeddings.append(list(item.embedding))

        logger.debug("Generated %d embeddings with OpenAI", len(embeddings))
        return embeddings
