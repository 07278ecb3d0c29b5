"""Suggest clusters worth synthesizing."""

import logging
from typing import Any

from ..cancel import CancellationToken, check
from ..clustering.cluster import ClusteringEngine
from ..errors import ExternalServiceError, OperationCancelled
from ..models import Cluster, Suggestion
from ..vault.base import DocumentStore
from .ranker import SuggestionRanker

logger = logging.getLogger(__name__)

DEFAULT_MIN_COHERENCE = {"tag": 0.4, "folder": 0.3, "similarity": 0.5}


def _pct(score: float) -> str:
    return f"{score * 100:.0f}%"


class SuggestionService:
    """Builds clusters from tags, folders or seed documents and ranks them.

    Failures while building one cluster are logged and that cluster is
    skipped; a failure while listing tags or folders yields no suggestions.
    """

    def __init__(
        self,
        engine: ClusteringEngine,
        store: DocumentStore,
        ranker: SuggestionRanker | None = None,
        min_cluster_size: int = 3,
        min_coherence: dict[str, float] | None = None,
        similarity_threshold: float = 0.5,
        similarity_max_size: int = 15,
        excluded_folders: list[str] | None = None,
        seed_count: int = 5,
    ):
        self.engine = engine
        self.store = store
        self.ranker = ranker or SuggestionRanker()
        self.min_cluster_size = min_cluster_size
        self.min_coherence = {**DEFAULT_MIN_COHERENCE, **(min_coherence or {})}
        self.similarity_threshold = similarity_threshold
        self.similarity_max_size = similarity_max_size
        self.excluded_folders = [f.strip("/") for f in (excluded_folders or []) if f.strip("/")]
        self.seed_count = seed_count

    @classmethod
    def from_config(cls, engine: ClusteringEngine, store: DocumentStore, config: dict[str, Any]) -> "SuggestionService":
        sugg_cfg = config.get("suggestions", {})
        clus_cfg = config.get("clustering", {})
        return cls(
            engine,
            store,
            ranker=SuggestionRanker(sugg_cfg.get("max_suggestions", 5)),
            min_cluster_size=sugg_cfg.get("min_cluster_size", 3),
            min_coherence=sugg_cfg.get("min_coherence"),
            similarity_threshold=clus_cfg.get("threshold", 0.5),
            similarity_max_size=clus_cfg.get("max_size", 15),
            excluded_folders=config.get("excluded_folders", []),
            seed_count=sugg_cfg.get("seed_count", 5),
        )

    def _qualifies(self, cluster: Cluster) -> bool:
        return (
            len(cluster.members) >= self.min_cluster_size
            and cluster.coherence_score >= self.min_coherence.get(cluster.source, 0.0)
        )

    def _folder_excluded(self, folder: str) -> bool:
        return any(folder == ex or folder.startswith(ex + "/") for ex in self.excluded_folders)

    async def default_seeds(self) -> list[str]:
        """First ``seed_count`` notes by path, outside excluded folders."""
        try:
            docs = await self.store.get_all()
        except (OSError, ExternalServiceError) as e:
            logger.warning(f"Could not list documents for seeding: {e}")
            return []
        docs = sorted((d for d in docs if not self.engine.is_excluded(d.path)), key=lambda d: d.path)
        return [d.id for d in docs[: self.seed_count]]

    async def suggest_by_tags(self, token: CancellationToken | None = None) -> list[Suggestion]:
        try:
            tags = await self.store.list_tags()
        except (OSError, ExternalServiceError) as e:
            logger.warning(f"Could not list tags: {e}")
            return []

        suggestions = []
        for tag in tags:
            cluster = await self._safely(self.engine.by_tag(tag, token), f"#{tag}")
            if cluster is not None and self._qualifies(cluster):
                reason = (
                    f"{len(cluster.members)} notes share the #{tag} tag "
                    f"(coherence: {_pct(cluster.coherence_score)})"
                )
                suggestions.append(self.ranker.suggest(cluster, reason))
        return self.ranker.rank(suggestions)

    async def suggest_by_folders(self, token: CancellationToken | None = None) -> list[Suggestion]:
        try:
            folders = await self.store.list_folders()
        except (OSError, ExternalServiceError) as e:
            logger.warning(f"Could not list folders: {e}")
            return []

        suggestions = []
        for folder in folders:
            if self._folder_excluded(folder):
                continue
            cluster = await self._safely(self.engine.by_folder(folder, token), folder)
            if cluster is not None and self._qualifies(cluster):
                reason = (
                    f"{len(cluster.members)} notes live in {folder} "
                    f"(coherence: {_pct(cluster.coherence_score)})"
                )
                suggestions.append(self.ranker.suggest(cluster, reason))
        return self.ranker.rank(suggestions)

    async def suggest_by_similarity(
        self,
        seed_ids: list[str],
        token: CancellationToken | None = None,
    ) -> list[Suggestion]:
        suggestions = []
        for seed_id in dict.fromkeys(seed_ids):
            cluster = await self._safely(
                self.engine.by_similarity(seed_id, self.similarity_threshold, self.similarity_max_size, token),
                seed_id,
            )
            if cluster is None or not self._qualifies(cluster):
                continue
            seed = next((m for m in cluster.members if m.id == seed_id), None)
            reason = (
                f'{len(cluster.members)} notes semantically close to "{seed.title if seed else seed_id}" '
                f"(coherence: {_pct(cluster.coherence_score)})"
            )
            suggestions.append(self.ranker.suggest(cluster, reason))
        return self.ranker.rank(suggestions)

    async def suggest_all(
        self,
        seed_ids: list[str],
        sources: list[str] | None = None,
        token: CancellationToken | None = None,
    ) -> list[Suggestion]:
        """Suggestions from every requested source, ranked together.

        Without ``seed_ids`` the similarity source is seeded from
        :meth:`default_seeds`.
        """
        sources = sources or ["similarity"]
        collected: list[Suggestion] = []
        if "similarity" in sources:
            if not seed_ids:
                seed_ids = await self.default_seeds()
            collected += await self.suggest_by_similarity(seed_ids, token)
        if "tag" in sources:
            collected += await self.suggest_by_tags(token)
        if "folder" in sources:
            collected += await self.suggest_by_folders(token)
        check(token)
        return self.ranker.rank(collected)

    async def _safely(self, coro, label: str) -> Cluster | None:
        try:
            return await coro
        except OperationCancelled:
            raise
        except Exception as e:
            logger.warning(f"Skipping cluster {label}: {e}")
            return None
