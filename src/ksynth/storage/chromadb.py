"""ChromaDB vector index backend.

Chroma is used only to persist vectors. Search loads every stored vector
and ranks locally with the shared cosine routine, so thresholds, exclusions,
dimension skipping and tie order behave exactly like the in-memory index.
No HNSW index is consulted, and each search is linear in the index size.
"""

import logging
from pathlib import Path

import chromadb
import numpy as np

from ..errors import ExternalServiceError
from ..models import EmbeddingVector, SearchResult
from .base import VectorIndexBase
from .similarity import rank

logger = logging.getLogger(__name__)


def _to_list(embedding) -> list[float]:
    return embedding.tolist() if isinstance(embedding, np.ndarray) else list(embedding)


class ChromaVectorIndex(VectorIndexBase):
    """ChromaDB-backed persistent vector index."""

    def __init__(self, chroma_path: str, collection_name: str = "embeddings"):
        self.chroma_path = Path(chroma_path)
        self.chroma_path.mkdir(parents=True, exist_ok=True)
        self.client = chromadb.PersistentClient(path=str(self.chroma_path))
        self.collection_name = collection_name

    @property
    def collection(self) -> chromadb.Collection:
        return self.client.get_or_create_collection(name=self.collection_name)

    def store(self, embedding: EmbeddingVector) -> None:
        try:
            self.collection.upsert(
                ids=[embedding.id],
                embeddings=[embedding.vector],
                documents=[embedding.text],
                metadatas=[{"path": embedding.path}],
            )
        except Exception as e:
            logger.error(f"Chroma upsert failed for {embedding.id}: {e}")
            raise ExternalServiceError(f"Could not store embedding for {embedding.id}: {e}") from e

    def get(self, doc_id: str) -> EmbeddingVector | None:
        data = self.collection.get(ids=[doc_id], include=["embeddings", "metadatas", "documents"])
        if not data["ids"]:
            return None
        return self._entry(data, 0)

    def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
        exclude_ids: list[str] | None = None,
    ) -> list[SearchResult]:
        return rank(query_vector, self._all(), limit, threshold, exclude_ids or ())

    def remove(self, doc_id: str) -> None:
        self.collection.delete(ids=[doc_id])

    def clear(self) -> None:
        ids = self.stored_ids()
        if ids:
            self.collection.delete(ids=ids)

    def size(self) -> int:
        return self.collection.count()

    def stored_ids(self) -> list[str]:
        return list(self.collection.get(include=[])["ids"])

    def _all(self) -> list[EmbeddingVector]:
        data = self.collection.get(include=["embeddings", "metadatas", "documents"])
        return [self._entry(data, i) for i in range(len(data["ids"]))]

    @staticmethod
    def _entry(data: dict, i: int) -> EmbeddingVector:
        metadatas = data.get("metadatas")
        documents = data.get("documents")
        meta = (metadatas[i] if metadatas is not None else None) or {}
        return EmbeddingVector(
            id=data["ids"][i],
            path=meta.get("path", ""),
            vector=_to_list(data["embeddings"][i]),
            text=(documents[i] if documents is not None else None) or "",
        )
