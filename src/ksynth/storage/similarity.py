"""Cosine similarity and nearest-neighbour ranking shared by every index."""

import logging
from collections.abc import Iterable

import numpy as np

from ..errors import DimensionMismatchError
from ..models import EmbeddingVector, SearchResult

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Zero-magnitude vectors score 0.0. Raises DimensionMismatchError when
    the lengths differ.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(f"vector lengths differ: {len(a)} != {len(b)}")

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(va, vb) / magnitude)


def rank(
    query_vector: list[float],
    entries: Iterable[EmbeddingVector],
    limit: int = 10,
    threshold: float = 0.3,
    exclude_ids: Iterable[str] = (),
) -> list[SearchResult]:
    """Rank stored vectors against a query.

    Entries of a different dimension are skipped. Results below
    ``threshold`` are dropped; at most ``limit`` are returned, highest
    similarity first. Ties keep the iteration order of ``entries``.
    """
    if limit <= 0:
        return []

    excluded = set(exclude_ids)
    results: list[SearchResult] = []
    skipped = 0

    for entry in entries:
        if entry.id in excluded:
            continue
        try:
            similarity = cosine_similarity(query_vector, entry.vector)
        except DimensionMismatchError:
            skipped += 1
            continue
        if similarity >= threshold:
            results.append(SearchResult(id=entry.id, path=entry.path, similarity=similarity))

    if skipped:
        logger.debug(f"Skipped {skipped} vector(s) with mismatched dimensions")

    # sorted() is stable, so equal scores stay in insertion order
    results = sorted(results, key=lambda r: r.similarity, reverse=True)
    return results[:limit]
