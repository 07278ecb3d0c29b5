"""Turn an accepted cluster into a persisted synthesis note.

Each request moves through four stages::

    ASSEMBLED -> CONTENT_FETCHED -> GENERATED -> PERSISTED

and can stop at any of them with an error that names the stage and the
request id. Nothing is written unless generation succeeded.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from ..cancel import CancellationToken, check
from ..errors import (
    EmptyInputError,
    ExternalServiceError,
    KsynthError,
    OperationCancelled,
    ProviderUnavailableError,
)
from ..models import (
    Cluster,
    Document,
    SynthesisOptions,
    SynthesisRequest,
    SynthesisResult,
    SynthesisType,
    create_synthesis_request,
)
from ..vault.base import DocumentStore
from ..vault.writer import SynthesisWriter
from .generator import SynthesisGenerator
from .prompts import TYPE_LABELS

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    ASSEMBLED = "assembled"
    CONTENT_FETCHED = "content_fetched"
    GENERATED = "generated"
    PERSISTED = "persisted"


@dataclass(frozen=True)
class SynthesisOutcome:
    request: SynthesisRequest
    result: SynthesisResult
    documents: tuple[Document, ...]
    stage: Stage
    path: str | None = None


def default_title(cluster: Cluster, synthesis_type: SynthesisType) -> str:
    return f"{cluster.name} - {TYPE_LABELS[synthesis_type]}"


class SynthesisOrchestrator:
    """Assemble, fetch, generate and persist a synthesis for one cluster."""

    def __init__(
        self,
        generator: SynthesisGenerator,
        store: DocumentStore,
        output_folder: str = "Synthesized",
        default_options: SynthesisOptions | None = None,
    ):
        self.generator = generator
        self.store = store
        self.output_folder = output_folder
        self.default_options = default_options or SynthesisOptions()
        self.writer = SynthesisWriter(store)

    def assemble(
        self,
        cluster: Cluster,
        synthesis_type: SynthesisType,
        target_title: str | None = None,
        options: SynthesisOptions | None = None,
    ) -> SynthesisRequest:
        ids = cluster.member_ids
        if not ids:
            raise EmptyInputError("No documents to synthesize", stage="assemble")
        return create_synthesis_request(
            ids,
            synthesis_type,
            options or self.default_options,
            target_title=target_title or default_title(cluster, synthesis_type),
        )

    async def fetch(self, request: SynthesisRequest, token: CancellationToken | None = None) -> list[Document]:
        """Resolve every source id; unresolvable ones are dropped."""
        documents = []
        for doc_id in request.source_document_ids:
            check(token)
            try:
                doc = await self.store.get(doc_id)
            except (OSError, ExternalServiceError) as e:
                logger.warning(f"Could not read {doc_id}: {e}")
                doc = None
            if doc is None:
                logger.warning(f"Dropping unresolvable document {doc_id} from {request.id}")
                continue
            documents.append(doc)

        if not documents:
            raise EmptyInputError(
                "Could not fetch any document contents",
                stage="fetch",
                request_id=request.id,
            )
        return documents

    async def generate(
        self,
        request: SynthesisRequest,
        documents: list[Document],
        token: CancellationToken | None = None,
    ) -> SynthesisResult:
        check(token)
        if not self.generator.is_available():
            raise ProviderUnavailableError("Synthesis generator is not configured")
        try:
            return await self.generator.generate(request, documents)
        except (ProviderUnavailableError, OperationCancelled):
            raise
        except KsynthError as e:
            logger.error(f"Generation failed for {request.id}: {e}")
            raise ExternalServiceError(str(e), stage="generate", request_id=request.id) from e
        except Exception as e:
            logger.error(f"Generation failed for {request.id}: {e}")
            raise ExternalServiceError(
                f"Generation failed: {e}", stage="generate", request_id=request.id
            ) from e

    async def persist(
        self,
        result: SynthesisResult,
        folder: str | None = None,
        token: CancellationToken | None = None,
    ) -> str:
        folder = self.output_folder if folder is None else folder
        try:
            path = await self.writer.save(result, folder, token)
        except OperationCancelled:
            raise
        except (OSError, KsynthError) as e:
            logger.error(f"Saving {result.title!r} failed: {e}")
            raise ExternalServiceError(
                f"Could not save synthesis: {e}", stage="persist", request_id=result.request_id
            ) from e
        logger.info(f"Saved synthesis to {path}")
        return path

    async def synthesize(
        self,
        cluster: Cluster,
        synthesis_type: SynthesisType,
        target_title: str | None = None,
        options: SynthesisOptions | None = None,
        token: CancellationToken | None = None,
    ) -> SynthesisOutcome:
        """Run every stage except persistence."""
        request = self.assemble(cluster, synthesis_type, target_title, options)
        documents = await self.fetch(request, token)
        result = await self.generate(request, documents, token)
        return SynthesisOutcome(request, result, tuple(documents), Stage.GENERATED)

    async def run(
        self,
        cluster: Cluster,
        synthesis_type: SynthesisType,
        target_title: str | None = None,
        options: SynthesisOptions | None = None,
        folder: str | None = None,
        token: CancellationToken | None = None,
    ) -> SynthesisOutcome:
        """Run every stage, including persistence."""
        outcome = await self.synthesize(cluster, synthesis_type, target_title, options, token)
        path = await self.persist(outcome.result, folder, token)
        return SynthesisOutcome(outcome.request, outcome.result, outcome.documents, Stage.PERSISTED, path)
