"""Code embeddings using CodeBERT via transformers."""

import logging
from typing import Optional, Sequence

import torch
from transformers import AutoModel, AutoTokenizer

from codeatlas.chunking.chunk import Chunk
from codeatlas.embeddings.base import Embedding

logger = logging.getLogger(__name__)


class CodeBertEmbedder:
    """Generate chunk embeddings locally with CodeBERT."""

    # CodeBERT produces 768-dimensional embeddings
    EMBEDDING_DIM = 768
    MODEL_NAME = "microsoft/codebert-base"

    def __init__(
        self,
        model_name: Optional[str] = None,
        batch_size: int = 16,
        max_length: int = 512,
    ):
        """
        Initialize the embedder.

        Args:
            model_name: Hugging Face model id (default: microsoft/codebert-base)
            batch_size: Number of chunks run through the model at once
            max_length: Token limit per chunk; longer input is truncated
        """
        self._model_name = model_name or self.MODEL_NAME
        self.batch_size = batch_size
        self.max_length = max_length

        # Lazy loading - only load when needed
        self._tokenizer: Optional[AutoTokenizer] = None
        self._model: Optional[AutoModel] = None

    @property
    def model_name(self) -> str:
        return self._model_name

    def _ensure_model_loaded(self) -> None:
        """Load the model if not already loaded."""
        if self._tokenizer is None:
            logger.info("Loading %s...", self._model_name)
            self._tokenizer = AutoTokenizer.from_pretrained(self._model_name)
            self._model = AutoModel.from_pretrained(self._model_name)
            self._model.eval()  # Set to evaluation mode
            logger.info("Model loaded.")

    def embed_texts(self, texts: Sequence[str]) -> list[Embedding]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: Source code strings

        Returns:
            One 768-dimensional embedding per text, in input order
        """
        if not texts:
            return []

        self._ensure_model_loaded()

        embeddings: list[Embedding] = []
        for i in range(0, len(texts), self.batch_size):
            batch = list(texts[i:i + self.batch_size])
            tokens = self._tokenizer(
                batch,
                return_tensors="pt",
                truncation=True,
                max_length=self.max_length,
                padding=True,
            )

            # Generate embeddings (no gradient needed)
            with torch.no_grad():
                outputs = self._model(**tokens)
                # Use [CLS] token embedding (first token)
                cls = outputs.last_hidden_state[:, 0, :]

            embeddings.extend(cls.tolist())
            logger.debug("Embedded %d/%d chunks", len(embeddings), len(texts))

        return embeddings

    def embed(self, chunks: Sequence[Chunk]) -> list[Embedding]:
        """Embed chunks; output order matches input order."""
        return self.embed_texts([chunk.text for chunk in chunks])
