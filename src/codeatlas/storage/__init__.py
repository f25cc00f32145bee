"""Storage Module — Persists chunks and their embeddings.

Usage:
    from codeatlas.storage import ChromaChunkStore

    store = ChromaChunkStore(db_path="./codeatlas_db", collection_name="myrepo")
    store.store_chunks(chunks, embeddings)
"""

from codeatlas.storage.base import ChunkStore
from codeatlas.storage.chroma_store import ChromaChunkStore

__all__ = ["ChunkStore", "ChromaChunkStore"]
