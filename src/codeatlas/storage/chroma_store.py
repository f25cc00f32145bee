"""ChromaDB-backed chunk storage."""

import logging
from pathlib import Path
from typing import Optional, Sequence

import chromadb
from chromadb.config import Settings

from codeatlas.chunking.chunk import Chunk
from codeatlas.config import DEFAULT_COLLECTION, DEFAULT_DB_PATH
from codeatlas.embeddings.base import Embedding
from codeatlas.errors import StorageError

logger = logging.getLogger(__name__)


class ChromaChunkStore:
    """Persist chunks and their embeddings in a ChromaDB collection."""

    UPSERT_BATCH_SIZE = 100

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        collection_name: str = DEFAULT_COLLECTION,
        reset: bool = False,
    ):
        """
        Args:
            db_path: Path to persist ChromaDB data
            collection_name: Name of the vector collection
            reset: Empty the collection right before the first batch is
                written, so a run that fails earlier leaves it untouched
        """
        self._db_path = Path(db_path)
        self._collection_name = collection_name
        self._pending_reset = reset

        # Lazy connection - only connect when needed
        self._chroma_client: Optional[chromadb.PersistentClient] = None
        self._collection: Optional[chromadb.Collection] = None

    @property
    def collection_name(self) -> str:
        return self._collection_name

    def _ensure_db_connected(self) -> None:
        """Connect to ChromaDB if not already connected."""
        if self._chroma_client is None:
            self._db_path.mkdir(parents=True, exist_ok=True)
            self._chroma_client = chromadb.PersistentClient(
                path=str(self._db_path),
                settings=Settings(anonymized_telemetry=False),
            )
            self._collection = self._chroma_client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},  # Use cosine similarity
            )

    def store_chunks(self, chunks: Sequence[Chunk], embeddings: Sequence[Embedding]) -> None:
        """
        Upsert chunks with their embeddings.

        Chunk ids are derived from path and byte range, so re-indexing an
        unchanged file overwrites its previous entries.

        Raises:
            StorageError: If the two sequences differ in length
        """
        if len(chunks) != len(embeddings):
            raise StorageError(
                f"Chunks and embeddings count mismatch: {len(chunks)} != {len(embeddings)}"
            )

        self._ensure_db_connected()
        if self._pending_reset:
            self.clear()

        for i in range(0, len(chunks), self.UPSERT_BATCH_SIZE):
            batch = chunks[i:i + self.UPSERT_BATCH_SIZE]
            self._collection.upsert(
                ids=[chunk.chunk_id for chunk in batch],
                embeddings=[list(e) for e in embeddings[i:i + self.UPSERT_BATCH_SIZE]],
                documents=[chunk.text for chunk in batch],
                metadatas=[chunk.to_dict() for chunk in batch],
            )
            logger.debug("Stored %d/%d chunks", min(i + len(batch), len(chunks)), len(chunks))

    def count(self) -> int:
        self._ensure_db_connected()
        return self._collection.count()

    def get_stats(self) -> dict:
        """Get statistics about the stored chunks."""
        return {
            "total_chunks": self.count(),
            "collection_name": self._collection_name,
            "db_path": str(self._db_path),
        }

    def clear(self) -> None:
        """Delete every stored chunk."""
        self._ensure_db_connected()
        self._pending_reset = False
        self._chroma_client.delete_collection(self._collection_name)
        self._collection = self._chroma_client.create_collection(
            name=self._collection_name,
            metadata={"hnsw:space": "cosine"},
        )
