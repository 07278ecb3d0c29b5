"""In-process vector index."""

from ..models import EmbeddingVector, SearchResult
from .base import VectorIndexBase
from .similarity import rank


class InMemoryVectorIndex(VectorIndexBase):
    """Dict-backed index. Writes are single key assignments (overwrite-only)."""

    def __init__(self):
        self._vectors: dict[str, EmbeddingVector] = {}

    def store(self, embedding: EmbeddingVector) -> None:
        self._vectors[embedding.id] = embedding

    def get(self, doc_id: str) -> EmbeddingVector | None:
        return self._vectors.get(doc_id)

    def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
        exclude_ids: list[str] | None = None,
    ) -> list[SearchResult]:
        # snapshot the values so a concurrent store() cannot change the iteration
        return rank(query_vector, list(self._vectors.values()), limit, threshold, exclude_ids or ())

    def remove(self, doc_id: str) -> None:
        self._vectors.pop(doc_id, None)

    def clear(self) -> None:
        self._vectors.clear()

    def size(self) -> int:
        return len(self._vectors)

    def stored_ids(self) -> list[str]:
        return list(self._vectors)
