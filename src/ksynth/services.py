"""Build every component from a config dict."""

import logging
from dataclasses import dataclass
from typing import Any

from .clustering.cluster import ClusteringEngine
from .clustering.coherence import CoherenceScorer
from .embeddings.embedder import EmbeddingService
from .embeddings.providers import get_embedding_provider
from .models import SynthesisOptions
from .storage import VectorIndexBase, get_vector_index
from .suggestions.suggest import SuggestionService
from .synthesis.generator import SynthesisGenerator, get_synthesis_generator
from .synthesis.orchestrator import SynthesisOrchestrator
from .vault.base import DocumentStore
from .vault.markdown import MarkdownVaultStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: DocumentStore
    index: VectorIndexBase
    embeddings: EmbeddingService | None
    engine: ClusteringEngine
    suggestions: SuggestionService
    generator: SynthesisGenerator
    orchestrator: SynthesisOrchestrator

    @property
    def similarity_enabled(self) -> bool:
        return self.embeddings is not None


def build_services(
    config: dict[str, Any],
    store: DocumentStore | None = None,
    index: VectorIndexBase | None = None,
    embeddings: EmbeddingService | None = None,
    generator: SynthesisGenerator | None = None,
) -> Services:
    """Wire the pipeline. Explicit arguments replace the configured parts.

    Without a usable embedding provider, similarity clustering and
    coherence scoring are disabled instead of failing.
    """
    if store is None:
        store = MarkdownVaultStore(config["vault_path"])
    if index is None:
        index = get_vector_index(config)

    if embeddings is None:
        provider = get_embedding_provider(config)
        if provider.is_available():
            embeddings = EmbeddingService(
                provider, index, batch_size=config.get("embedding", {}).get("batch_size", 100)
            )
        else:
            logger.warning("No embedding provider configured; similarity features are disabled")

    clus_cfg = config.get("clustering", {})
    excluded = config.get("excluded_folders", [])
    scorer = None
    if embeddings is not None:
        scorer = CoherenceScorer(embeddings, exact_max_size=clus_cfg.get("exact_coherence_max_size", 8))
    engine = ClusteringEngine(store, embeddings, scorer, excluded_folders=excluded)

    if generator is None:
        generator = get_synthesis_generator(config)
    orchestrator = SynthesisOrchestrator(
        generator,
        store,
        output_folder=config.get("output_folder", "Synthesized"),
        default_options=SynthesisOptions.from_config(config.get("synthesis", {})),
    )

    return Services(
        store=store,
        index=index,
        embeddings=embeddings,
        engine=engine,
        suggestions=SuggestionService.from_config(engine, store, config),
        generator=generator,
        orchestrator=orchestrator,
    )
