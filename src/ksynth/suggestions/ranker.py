"""Turn clusters into prioritized, deduplicated suggestions."""

from ..models import Cluster, Priority, Suggestion, SynthesisType

HIGH_PRIORITY_SCORE = 0.6
MEDIUM_PRIORITY_SCORE = 0.3
# member count at which cluster size stops adding to priority
FULL_SIZE = 10

FRAMEWORK_MIN_MEMBERS = 7
COMPARISON_MIN_MEMBERS = 4

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


class SuggestionRanker:
    """Priority, suggested type, ordering and deduplication of suggestions."""

    def __init__(self, max_suggestions: int = 5):
        self.max_suggestions = max_suggestions

    @staticmethod
    def priority(cluster: Cluster) -> Priority:
        score = cluster.coherence_score * min(len(cluster.members) / FULL_SIZE, 1.0)
        if score >= HIGH_PRIORITY_SCORE:
            return "high"
        if score >= MEDIUM_PRIORITY_SCORE:
            return "medium"
        return "low"

    @staticmethod
    def suggested_type(cluster: Cluster) -> SynthesisType:
        if cluster.source == "similarity":
            return "framework"
        count = len(cluster.members)
        if count >= FRAMEWORK_MIN_MEMBERS:
            return "framework"
        if count >= COMPARISON_MIN_MEMBERS:
            return "comparison"
        return "summary"

    def suggest(self, cluster: Cluster, reason: str) -> Suggestion:
        return Suggestion(
            cluster=cluster,
            reason=reason,
            priority=self.priority(cluster),
            suggested_type=self.suggested_type(cluster),
        )

    @staticmethod
    def sort(suggestions: list[Suggestion]) -> list[Suggestion]:
        """Priority first, then coherence, both descending. Stable."""
        return sorted(
            suggestions,
            key=lambda s: (PRIORITY_ORDER[s.priority], s.cluster.coherence_score),
            reverse=True,
        )

    @staticmethod
    def deduplicate(suggestions: list[Suggestion]) -> list[Suggestion]:
        """Keep the first suggestion for each distinct set of member ids."""
        seen: set[str] = set()
        unique = []
        for suggestion in suggestions:
            key = suggestion.dedup_key
            if key in seen:
                continue
            seen.add(key)
            unique.append(suggestion)
        return unique

    def rank(self, suggestions: list[Suggestion], max_suggestions: int | None = None) -> list[Suggestion]:
        """Sort, drop duplicates, then cut to the maximum count."""
        limit = self.max_suggestions if max_suggestions is None else max_suggestions
        return self.deduplicate(self.sort(suggestions))[:limit]
