"""Read-through vector index over an externally maintained embeddings snapshot.

Another tool (for example the Vault Embeddings plugin) writes the vectors
to disk; this index only reads them. Layout::

    <snapshot_path>/index.json              {"model": ..., "notes": {id: {"path": ...}}}
    <snapshot_path>/<folder>/<safe_id>.json {"vector": [...], ...}
"""

import asyncio
import json
import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from pathlib import Path

from ..models import EmbeddingVector, SearchResult
from .base import VectorIndexBase
from .similarity import rank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """One consistent load of the external embeddings."""
    vectors: dict[str, EmbeddingVector] = field(default_factory=dict)
    model: str = "unknown"
    loaded_at: float | None = None


def safe_id(doc_id: str) -> str:
    """File-name form of a document id."""
    return re.sub(r"[^a-zA-Z0-9\-_]", "_", doc_id)


class VaultEmbeddingsLoader:
    """Loads a Snapshot from a Vault Embeddings style directory."""

    def __init__(self, snapshot_path: str | Path, embeddings_folder: str = "embeddings"):
        self.snapshot_path = Path(snapshot_path)
        self.embeddings_folder = embeddings_folder

    async def __call__(self) -> Snapshot:
        index_file = self.snapshot_path / "index.json"
        if not index_file.exists():
            logger.warning(f"Embeddings index not found: {index_file}")
            return Snapshot()

        try:
            index = json.loads(index_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read embeddings index {index_file}: {e}")
            return Snapshot()

        vectors: dict[str, EmbeddingVector] = {}
        folder = self.snapshot_path / self.embeddings_folder
        for doc_id, info in (index.get("notes") or {}).items():
            path = folder / f"{safe_id(doc_id)}.json"
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                logger.debug(f"Skipping unreadable embedding file: {path}")
                continue
            vector = data.get("vector")
            if not vector:
                continue
            vectors[doc_id] = EmbeddingVector(id=doc_id, path=info.get("path", ""), vector=list(vector))

        logger.info(f"Loaded {len(vectors)} embeddings from {self.snapshot_path}")
        return Snapshot(vectors=vectors, model=index.get("model", "unknown"))


class SnapshotVectorIndex(VectorIndexBase):
    """TTL-cached, read-only index.

    ``store``/``remove``/``clear`` are no-ops. A stale cache is reloaded on
    the next ``ensure_fresh()``; concurrent stale checks share one reload.
    """

    read_only = True

    def __init__(
        self,
        loader: Callable[[], Awaitable[Snapshot]],
        ttl_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._snapshot = Snapshot()
        self._lock = asyncio.Lock()
        self.reload_count = 0

    @property
    def model(self) -> str:
        return self._snapshot.model

    def is_stale(self) -> bool:
        loaded_at = self._snapshot.loaded_at
        return loaded_at is None or self._clock() - loaded_at > self._ttl

    async def refresh(self) -> None:
        """Reload the snapshot unconditionally."""
        async with self._lock:
            await self._reload()

    async def ensure_fresh(self) -> None:
        if not self.is_stale():
            return
        async with self._lock:
            # another caller may have reloaded while we waited
            if self.is_stale():
                await self._reload()

    async def _reload(self) -> None:
        snapshot = await self._loader()
        self._snapshot = replace(snapshot, loaded_at=self._clock())
        self.reload_count += 1

    def store(self, embedding: EmbeddingVector) -> None:
        logger.debug(f"store({embedding.id}) ignored: snapshot index is read-only")

    def get(self, doc_id: str) -> EmbeddingVector | None:
        return self._snapshot.vectors.get(doc_id)

    def search(
        self,
        query_vector: list[float],
        limit: int = 10,
        threshold: float = 0.3,
        exclude_ids: list[str] | None = None,
    ) -> list[SearchResult]:
        return rank(query_vector, self._snapshot.vectors.values(), limit, threshold, exclude_ids or ())

    def remove(self, doc_id: str) -> None:
        logger.debug(f"remove({doc_id}) ignored: snapshot index is read-only")

    def clear(self) -> None:
        logger.debug("clear() ignored: snapshot index is read-only")

    def size(self) -> int:
        return len(self._snapshot.vectors)

    def stored_ids(self) -> list[str]:
        return list(self._snapshot.vectors)
