"""Build clusters of related documents by tag, folder, similarity or hand-picked ids."""

import logging
from pathlib import PurePosixPath

import numpy as np

from ..cancel import CancellationToken, check
from ..embeddings.embedder import EmbeddingService
from ..errors import ExternalServiceError, ProviderUnavailableError
from ..models import Cluster, ClusterMember, ClusterSource, Document, create_cluster
from ..vault.base import DocumentStore
from .coherence import CoherenceScorer

logger = logging.getLogger(__name__)


class ClusteringEngine:
    """Groups documents into Clusters.

    ``embeddings`` may be None when no embedding provider is configured; tag,
    folder and manual clustering still work (without coherence), similarity
    clustering returns empty clusters.
    """

    def __init__(
        self,
        store: DocumentStore,
        embeddings: EmbeddingService | None = None,
        scorer: CoherenceScorer | None = None,
        excluded_folders: list[str] | None = None,
    ):
        self.store = store
        self.embeddings = embeddings
        if scorer is None and embeddings is not None:
            scorer = CoherenceScorer(embeddings)
        self.scorer = scorer
        self.excluded_folders = [f.strip("/") for f in (excluded_folders or []) if f.strip("/")]

    def is_excluded(self, path: str) -> bool:
        return any(path.startswith(folder + "/") for folder in self.excluded_folders)

    async def by_tag(self, tag: str, token: CancellationToken | None = None) -> Cluster:
        tag = tag.lstrip("#")
        check(token)
        try:
            docs = await self.store.get_by_tag(tag)
        except (OSError, ExternalServiceError) as e:
            logger.warning(f"Could not list documents tagged #{tag}: {e}")
            docs = []
        return await self._attribute_cluster(f"#{tag}", docs, "tag", token)

    async def by_folder(self, folder: str, token: CancellationToken | None = None) -> Cluster:
        check(token)
        try:
            docs = await self.store.get_by_folder(folder)
        except (OSError, ExternalServiceError) as e:
            logger.warning(f"Could not list documents in {folder}: {e}")
            docs = []
        return await self._attribute_cluster(folder, docs, "folder", token)

    async def manual(self, doc_ids: list[str], name: str, token: CancellationToken | None = None) -> Cluster:
        """Cluster of explicitly chosen documents; unknown ids are dropped."""
        docs: list[Document] = []
        for doc_id in dict.fromkeys(doc_ids):
            check(token)
            doc = await self.store.get(doc_id)
            if doc is None:
                logger.debug(f"Manual cluster: dropping unknown id {doc_id}")
                continue
            docs.append(doc)
        return await self._build(name, docs, "manual", token)

    async def by_similarity(
        self,
        seed_id: str,
        threshold: float = 0.5,
        max_size: int = 20,
        token: CancellationToken | None = None,
    ) -> Cluster:
        """Seed document plus its nearest neighbours, at most ``max_size`` members."""
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        check(token)
        seed = await self.store.get(seed_id)
        if seed is None:
            logger.warning(f"Seed document not found: {seed_id}")
            return create_cluster("Unknown", [], "similarity")
        if self.is_excluded(seed.path):
            logger.debug(f"Seed {seed_id} is in an excluded folder")
            return create_cluster("Unknown", [], "similarity")
        if self.embeddings is None:
            logger.warning("Similarity clustering disabled: no embedding provider")
            return create_cluster("Unknown", [], "similarity")

        await self._ensure_embedded([seed], token)
        if not self.embeddings.has_embedding(seed.id):
            logger.warning(f"No vector for seed {seed_id}; cannot cluster by similarity")
            return create_cluster("Unknown", [], "similarity")

        wanted = max_size - 1
        # over-fetch so excluded paths can be dropped and still fill the cluster
        hits = await self.embeddings.find_similar_by_id(seed.id, limit=2 * wanted, threshold=threshold)
        hits = [h for h in hits if not self.is_excluded(h.path)][:wanted]

        members = [ClusterMember(id=seed.id, path=seed.path, title=seed.title, similarity=1.0)]
        for hit in hits:
            check(token)
            doc = await self.store.get_by_path(hit.path) if hit.path else None
            title = doc.title if doc else (PurePosixPath(hit.path).stem or hit.id)
            members.append(ClusterMember(id=hit.id, path=hit.path, title=title, similarity=hit.similarity))

        return await self._finish(f"Similar to: {seed.title}", members, "similarity", token)

    async def _attribute_cluster(
        self,
        name: str,
        docs: list[Document],
        source: ClusterSource,
        token: CancellationToken | None,
    ) -> Cluster:
        docs = [d for d in docs if not self.is_excluded(d.path)]
        return await self._build(name, docs, source, token)

    async def _build(
        self,
        name: str,
        docs: list[Document],
        source: ClusterSource,
        token: CancellationToken | None,
    ) -> Cluster:
        if not docs:
            return create_cluster(name, [], source)

        if len(docs) > 1:
            await self._ensure_embedded(docs, token)

        # attribute membership is binary
        members = [ClusterMember(id=d.id, path=d.path, title=d.title, similarity=1.0) for d in docs]
        return await self._finish(name, members, source, token)

    async def _finish(
        self,
        name: str,
        members: list[ClusterMember],
        source: ClusterSource,
        token: CancellationToken | None,
    ) -> Cluster:
        ids = [m.id for m in members]
        if self.scorer is not None:
            coherence = await self.scorer.score(ids, token)
        else:
            coherence = 1.0 if len(ids) < 2 else 0.0
        return create_cluster(name, members, source, coherence, self._centroid(ids))

    async def _ensure_embedded(self, docs: list[Document], token: CancellationToken | None) -> None:
        if self.embeddings is None:
            return
        try:
            await self.embeddings.ensure_embedded(docs, token)
        except (ProviderUnavailableError, ExternalServiceError) as e:
            logger.warning(f"Embedding skipped: {e}")

    def _centroid(self, ids: list[str]) -> list[float] | None:
        """Mean member vector, when every member has one of the same size."""
        if self.embeddings is None or not ids:
            return None
        vectors = [self.embeddings.get_vector(i) for i in ids]
        if any(v is None for v in vectors):
            return None
        if len({len(v.vector) for v in vectors}) != 1:
            return None
        return np.array([v.vector for v in vectors], dtype=float).mean(axis=0).tolist()
