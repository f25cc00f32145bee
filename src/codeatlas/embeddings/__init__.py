"""Embeddings Module — Converts chunks into vectors.

Three providers ship with codeatlas:
    - CodeBertEmbedder: microsoft/codebert-base run locally via transformers
    - OllamaEmbedder:   any embedding model served by Ollama
    - OpenAIEmbedder:   OpenAI's hosted embedding models

Usage:
    from codeatlas.embeddings import create_embedder
    from codeatlas.config import load_settings

    embedder = create_embedder(load_settings())
    vectors = embedder.embed(chunks)
"""

from codeatlas.config import Settings
from codeatlas.embeddings.base import Embedding, EmbeddingProvider


def create_embedder(settings: Settings) -> EmbeddingProvider:
    """
    Build the embedding provider named in settings.

    Imports are deferred so that choosing a remote provider never loads torch.
    """
    if settings.embedder == "ollama":
        from codeatlas.embeddings.ollama_embedder import OllamaEmbedder

        return OllamaEmbedder(
            model=settings.model,
            host=settings.ollama_host,
            timeout=settings.timeout,
        )

    if settings.embedder == "openai":
        from codeatlas.embeddings.openai_embedder import OpenAIEmbedder

        return OpenAIEmbedder(
            model=settings.model,
            api_key=settings.openai_api_key,
            timeout=settings.timeout,
        )

    from codeatlas.embeddings.codebert import CodeBertEmbedder

    return CodeBertEmbedder(model_name=settings.model)


__all__ = ["Embedding", "EmbeddingProvider", "create_embedder"]
