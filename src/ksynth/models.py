"""Data models used throughout ksynth."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

ClusterSource = Literal["tag", "folder", "similarity", "manual"]
Priority = Literal["high", "medium", "low"]
SynthesisType = Literal["framework", "summary", "comparison", "timeline"]
Language = Literal["en", "ko"]

SYNTHESIS_TYPES: tuple[str, ...] = ("framework", "summary", "comparison", "timeline")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass
class Document:
    """A note from the document store. The core only holds transient copies."""
    id: str
    path: str
    title: str
    content: str
    tags: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class EmbeddingVector:
    """An embedding stored in the vector index."""
    id: str
    path: str
    vector: list[float]
    text: str = ""  # truncated source text, diagnostics only


@dataclass(frozen=True)
class SearchResult:
    """One nearest-neighbour hit."""
    id: str
    path: str
    similarity: float


@dataclass(frozen=True)
class ClusterMember:
    id: str
    path: str
    title: str
    similarity: float = 1.0


@dataclass(frozen=True)
class Cluster:
    """A named group of related documents."""
    id: str
    name: str
    members: tuple[ClusterMember, ...]
    source: ClusterSource
    coherence_score: float = 0.0
    centroid_vector: list[float] | None = None
    created_at: datetime = field(default_factory=_now)

    @property
    def member_ids(self) -> list[str]:
        return [m.id for m in self.members]

    @property
    def is_empty(self) -> bool:
        return not self.members


def create_cluster(
    name: str,
    members: list[ClusterMember],
    source: ClusterSource,
    coherence_score: float = 0.0,
    centroid_vector: list[float] | None = None,
) -> Cluster:
    """Build a cluster, dropping repeated member ids (first one wins)."""
    seen: set[str] = set()
    unique = []
    for member in members:
        if member.id in seen:
            continue
        seen.add(member.id)
        unique.append(member)

    return Cluster(
        id=_new_id("cluster"),
        name=name,
        members=tuple(unique),
        source=source,
        coherence_score=coherence_score if unique else 0.0,
        centroid_vector=centroid_vector,
    )


@dataclass(frozen=True)
class Suggestion:
    """A ranked recommendation to synthesize a cluster. Never persisted."""
    cluster: Cluster
    reason: str
    priority: Priority
    suggested_type: SynthesisType

    @property
    def dedup_key(self) -> str:
        return ",".join(sorted(self.cluster.member_ids))


@dataclass(frozen=True)
class SynthesisOptions:
    include_backlinks: bool = True
    auto_suggest_tags: bool = True
    language: Language = "en"

    @classmethod
    def from_config(cls, cfg: dict[str, Any]) -> "SynthesisOptions":
        return cls(
            include_backlinks=bool(cfg.get("include_backlinks", True)),
            auto_suggest_tags=bool(cfg.get("auto_suggest_tags", True)),
            language=cfg.get("language", "en"),
        )


@dataclass(frozen=True)
class SynthesisRequest:
    id: str
    source_document_ids: tuple[str, ...]
    synthesis_type: SynthesisType
    options: SynthesisOptions
    target_title: str | None = None
    created_at: datetime = field(default_factory=_now)


def create_synthesis_request(
    source_document_ids: list[str],
    synthesis_type: SynthesisType = "framework",
    options: SynthesisOptions | None = None,
    target_title: str | None = None,
) -> SynthesisRequest:
    """Build a request; ids keep input order and repeats are dropped."""
    return SynthesisRequest(
        id=_new_id("syn"),
        source_document_ids=tuple(dict.fromkeys(source_document_ids)),
        synthesis_type=synthesis_type,
        options=options or SynthesisOptions(),
        target_title=target_title,
    )


@dataclass(frozen=True)
class SynthesisResult:
    id: str
    request_id: str
    title: str
    content: str
    source_links: tuple[str, ...]
    synthesis_type: SynthesisType
    suggested_tags: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=_now)


def create_synthesis_result(
    request_id: str,
    title: str,
    content: str,
    source_links: list[str],
    synthesis_type: SynthesisType,
    suggested_tags: list[str] | None = None,
) -> SynthesisResult:
    return SynthesisResult(
        id=_new_id("result"),
        request_id=request_id,
        title=title,
        content=content,
        source_links=tuple(source_links),
        synthesis_type=synthesis_type,
        suggested_tags=tuple(suggested_tags or ()),
    )
