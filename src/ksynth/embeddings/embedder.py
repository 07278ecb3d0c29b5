"""Embedding service: makes sure documents have vectors and searches them."""

import asyncio
import logging
from typing import Any

from ..cancel import CancellationToken, check
from ..errors import ExternalServiceError, ProviderUnavailableError
from ..models import Document, EmbeddingVector, SearchResult
from ..storage.base import VectorIndexBase
from .providers import EmbeddingProvider

logger = logging.getLogger(__name__)


def document_text(doc: Document) -> str:
    """Text that gets embedded for a document."""
    return f"{doc.title}\n\n{doc.content}"


class EmbeddingService:
    """Couples an embedding provider with a vector index.

    Embedding is memoized: a document whose id already has a vector (in the
    index, or computed earlier by this service) is never sent again. Vectors
    computed here are also kept locally so they stay usable when the index
    is a read-only snapshot.
    """

    def __init__(self, provider: EmbeddingProvider, index: VectorIndexBase, batch_size: int = 100):
        self.provider = provider
        self.index = index
        self.batch_size = max(1, batch_size)
        self._local: dict[str, EmbeddingVector] = {}
        self._lock = asyncio.Lock()

    def is_available(self) -> bool:
        return self.provider.is_available()

    def get_vector(self, doc_id: str) -> EmbeddingVector | None:
        return self.index.get(doc_id) or self._local.get(doc_id)

    def has_embedding(self, doc_id: str) -> bool:
        return self.get_vector(doc_id) is not None

    async def ensure_embedded(
        self,
        docs: list[Document],
        token: CancellationToken | None = None,
    ) -> int:
        """Embed every document that has no vector yet.

        Batches are sent one after another. Returns the number of documents
        embedded by this call.
        """
        await self.index.ensure_fresh()

        async with self._lock:
            pending: list[Document] = []
            seen: set[str] = set()
            for doc in docs:
                if doc.id in seen or self.has_embedding(doc.id):
                    continue
                seen.add(doc.id)
                pending.append(doc)

            if not pending:
                return 0
            if not self.provider.is_available():
                raise ProviderUnavailableError("Embedding provider is not configured")

            embedded = 0
            for start in range(0, len(pending), self.batch_size):
                check(token)
                batch = pending[start:start + self.batch_size]
                texts = [document_text(d) for d in batch]
                vectors = await self.provider.embed_batch(texts)
                if len(vectors) != len(batch):
                    raise ExternalServiceError(
                        f"Provider returned {len(vectors)} vector(s) for {len(batch)} text(s)"
                    )

                for doc, text, vector in zip(batch, texts, vectors):
                    if not vector:
                        logger.debug(f"No vector for {doc.id} (empty text)")
                        continue
                    embedding = EmbeddingVector(id=doc.id, path=doc.path, vector=vector, text=text[:200])
                    self._local[doc.id] = embedding
                    self.index.store(embedding)
                    embedded += 1

            logger.info(f"Embedded {embedded} document(s)")
            return embedded

    async def find_similar_by_id(
        self,
        doc_id: str,
        limit: int = 10,
        threshold: float = 0.3,
        exclude_ids: list[str] | None = None,
    ) -> list[SearchResult]:
        """Neighbours of a stored document, never including the document itself."""
        await self.index.ensure_fresh()
        embedding = self.get_vector(doc_id)
        if embedding is None:
            logger.warning(f"No embedding found for document: {doc_id}")
            return []

        excluded = [*(exclude_ids or []), doc_id]
        return self.index.search(embedding.vector, limit=limit, threshold=threshold, exclude_ids=excluded)

    async def find_similar_by_text(
        self,
        query: str,
        limit: int = 10,
        threshold: float = 0.3,
        token: CancellationToken | None = None,
    ) -> list[SearchResult]:
        """Embed a free-text query and search. Returns [] when search is impossible."""
        if not self.provider.is_available():
            logger.warning("Query embedding provider not available")
            return []

        await self.index.ensure_fresh()
        if self.index.size() == 0:
            logger.warning("No embeddings available; run `ksynth embed` first")
            return []

        check(token)
        try:
            vector = await self.provider.embed(query)
        except (ExternalServiceError, ValueError) as e:
            logger.error(f"Search by text failed: {e}")
            return []
        return self.index.search(vector, limit=limit, threshold=threshold)

    def stored_ids(self) -> list[str]:
        return self.index.stored_ids()

    def stats(self) -> dict[str, Any]:
        return {
            "total_embeddings": self.index.size(),
            "computed_this_session": len(self._local),
            "provider_available": self.provider.is_available(),
            "read_only_index": self.index.read_only,
        }
