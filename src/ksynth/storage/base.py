"""Abstract base class for vector indexes and factory function."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from ..models import EmbeddingVector, SearchResult


class VectorIndexBase(ABC):
    """Common interface for vector index backends.

    An index stores one embedding per document id and answers cosine
    nearest-neighbour queries. It never embeds anything itself.
    """

    #: read-through indexes ignore store/remove/clear
    read_only: bool = False

    @abstractmethod
    def store(self, embedding: EmbeddingVector) -> None:
        """Add or overwrite the embedding for ``embedding.id``."""

    @abstractmethod
    def get(self, doc_id: str) -> EmbeddingVector | None:
        """Return the stored embedding, or None."""

    @abstractmethod
    def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
        exclude_ids: list[str] | None = None,
    ) -> list[SearchResult]:
        """Nearest neighbours by cosine similarity, best first."""

    @abstractmethod
    def remove(self, doc_id: str) -> None:
        """Delete one embedding."""

    @abstractmethod
    def clear(self) -> None:
        """Delete every embedding."""

    @abstractmethod
    def size(self) -> int:
        """Number of stored embeddings."""

    @abstractmethod
    def stored_ids(self) -> list[str]:
        """Ids of every stored embedding."""

    async def ensure_fresh(self) -> None:
        """Reload backing data if it is stale. Owned indexes are always fresh."""


def get_vector_index(config: dict[str, Any]) -> VectorIndexBase:
    """Factory: return the right vector index based on config."""
    index_cfg = config.get("vector_index", {})
    backend = index_cfg.get("backend", "memory")

    if backend == "memory":
        from .memory import InMemoryVectorIndex
        return InMemoryVectorIndex()
    elif backend == "chromadb":
        from .chromadb import ChromaVectorIndex
        return ChromaVectorIndex(index_cfg["chroma_path"])
    elif backend == "snapshot":
        from .snapshot import SnapshotVectorIndex, VaultEmbeddingsLoader
        snapshot_path = Path(config["vault_path"]) / index_cfg.get("snapshot_path", "09_Embedded")
        loader = VaultEmbeddingsLoader(
            snapshot_path,
            embeddings_folder=index_cfg.get("embeddings_folder", "embeddings"),
        )
        return SnapshotVectorIndex(loader, ttl_seconds=index_cfg.get("cache_ttl_seconds", 60))
    else:
        raise ValueError(f"Unknown vector_index backend: {backend}")
