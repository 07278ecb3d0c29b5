"""In-memory stand-ins for the document store, embedding provider and generator."""

from ksynth.embeddings.providers import EmbeddingProvider
from ksynth.errors import DocumentExistsError, ExternalServiceError, NotFoundError
from ksynth.models import Document, SynthesisRequest, SynthesisResult, create_synthesis_result
from ksynth.synthesis.generator import SynthesisGenerator, suggest_tags
from ksynth.vault.base import DocumentStore
from ksynth.vault.markdown import folder_matches, tag_matches


def make_doc(doc_id, folder="notes", tags=(), content=None, title=None):
    return Document(
        id=doc_id,
        path=f"{folder}/{doc_id}.md" if folder else f"{doc_id}.md",
        title=title or doc_id.replace("-", " ").title(),
        content=content if content is not None else f"Body of {doc_id}",
        tags=set(tags),
    )


class FakeStore(DocumentStore):
    """Document store backed by a dict of path -> Document plus raw written text."""

    def __init__(self, docs=()):
        self.docs = {d.path: d for d in docs}
        self.written: dict[str, str] = {}
        self.calls: list[str] = []

    async def get(self, doc_id):
        self.calls.append(f"get:{doc_id}")
        return next((d for d in self.docs.values() if d.id == doc_id), None)

    async def get_by_path(self, path):
        return self.docs.get(path)

    async def get_by_tag(self, tag):
        return [d for d in self.docs.values() if any(tag_matches(t, tag) for t in d.tags)]

    async def get_by_folder(self, folder):
        return [d for d in self.docs.values() if folder_matches(d.path.rsplit("/", 1)[0], folder)]

    async def get_all(self):
        return list(self.docs.values())

    async def create(self, path, content):
        self.calls.append(f"create:{path}")
        if path in self.written or path in self.docs:
            raise DocumentExistsError(path)
        self.written[path] = content

    async def update(self, path, content):
        self.calls.append(f"update:{path}")
        if path not in self.written and path not in self.docs:
            raise NotFoundError(path)
        self.written[path] = content

    async def list_tags(self):
        return sorted({t for d in self.docs.values() for t in d.tags})

    async def list_folders(self):
        return sorted({d.path.rsplit("/", 1)[0] for d in self.docs.values() if "/" in d.path})


class FakeEmbeddingProvider(EmbeddingProvider):
    """Returns a fixed vector per document title (the first line of the embedded text)."""

    def __init__(self, vectors=None, available=True, default=None):
        self.vectors = vectors or {}
        self.available = available
        self.default = default
        self.batches: list[list[str]] = []
        self.queries: list[str] = []

    def _lookup(self, text):
        key = text.split("\n\n", 1)[0]
        return list(self.vectors.get(key, self.default or []))

    async def embed(self, text):
        self.queries.append(text)
        return self._lookup(text)

    async def embed_batch(self, texts):
        self.batches.append(list(texts))
        return [self._lookup(t) for t in texts]

    def is_available(self):
        return self.available

    def dimensions(self):
        return 2


class FakeGenerator(SynthesisGenerator):
    def __init__(self, content="# Synthesis\n\nCombined insight.", error=None, available=True):
        self.content = content
        self.error = error
        self.available = available
        self.requests: list[SynthesisRequest] = []

    async def generate(self, request, documents) -> SynthesisResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return create_synthesis_result(
            request_id=request.id,
            title=request.target_title or "Synthesis Note",
            content=self.content,
            source_links=[f"[[{d.title}]]" for d in documents],
            synthesis_type=request.synthesis_type,
            suggested_tags=suggest_tags(documents) if request.options.auto_suggest_tags else [],
        )

    async def suggest_title(self, documents):
        return "Suggested Title"

    async def suggest_type(self, documents):
        return "summary"

    def is_available(self):
        return self.available


def failing_generator():
    return FakeGenerator(error=ExternalServiceError("503 Service Unavailable"))
