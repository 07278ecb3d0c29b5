"""Cluster coherence: how tightly the members of a cluster relate.

Two estimators:

- exact pairwise: mean cosine similarity over every pair of members that
  has a vector. Used for small clusters, where it is cheap.
- neighbor-sampled: each member asks the index for its ``n-1`` nearest
  neighbours; hits that are themselves members contribute their similarity.
  This reuses the nearest-neighbour search instead of computing all pairs.
  It is an approximation: a true pair is missed when non-members crowd it
  out of a member's neighbour list.

Both return 1.0 for clusters of fewer than two members, 0.0 when no pair
could be measured, and are clamped to [0, 1].
"""

import logging
from itertools import combinations

from ..cancel import CancellationToken, check
from ..embeddings.embedder import EmbeddingService
from ..errors import DimensionMismatchError
from ..storage.similarity import cosine_similarity

logger = logging.getLogger(__name__)

# lowest possible cosine similarity: no threshold floor
NO_FLOOR = -1.0


def _clamp(score: float) -> float:
    return min(1.0, max(0.0, score))


class CoherenceScorer:
    """Scores a set of cluster members."""

    def __init__(self, embeddings: EmbeddingService, exact_max_size: int = 8):
        self.embeddings = embeddings
        self.exact_max_size = exact_max_size

    async def score(self, member_ids: list[str], token: CancellationToken | None = None) -> float:
        ids = list(dict.fromkeys(member_ids))
        if len(ids) < 2:
            return 1.0
        if len(ids) <= self.exact_max_size:
            return self.pairwise(ids)
        return await self.neighbor_sampled(ids, token)

    def pairwise(self, member_ids: list[str]) -> float:
        """Exact mean pairwise similarity."""
        vectors = [v for mid in member_ids if (v := self.embeddings.get_vector(mid)) is not None]
        total = 0.0
        pairs = 0
        for a, b in combinations(vectors, 2):
            try:
                total += cosine_similarity(a.vector, b.vector)
            except DimensionMismatchError:
                continue
            pairs += 1
        if pairs == 0:
            return 0.0
        return _clamp(total / pairs)

    async def neighbor_sampled(self, member_ids: list[str], token: CancellationToken | None = None) -> float:
        """Mean similarity of member-to-member hits in each member's neighbour list."""
        members = set(member_ids)
        limit = len(member_ids) - 1
        total = 0.0
        pairs = 0
        for mid in member_ids:
            check(token)
            neighbours = await self.embeddings.find_similar_by_id(mid, limit=limit, threshold=NO_FLOOR)
            for hit in neighbours:
                if hit.id in members:
                    total += hit.similarity
                    pairs += 1
        if pairs == 0:
            return 0.0
        return _clamp(total / pairs)
