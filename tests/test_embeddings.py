"""Tests for embedding providers and the embedding service."""

import asyncio
from types import SimpleNamespace

import pytest

from fakes import FakeEmbeddingProvider, make_doc
from ksynth.cancel import CancellationToken
from ksynth.embeddings.embedder import EmbeddingService, document_text
from ksynth.embeddings.providers import OpenAIEmbeddingProvider, clean_text, get_embedding_provider
from ksynth.errors import ExternalServiceError, OperationCancelled, ProviderUnavailableError
from ksynth.storage.memory import InMemoryVectorIndex


class FakeEmbeddingsAPI:
    """Mimics ``client.embeddings`` and returns items in reverse order."""

    def __init__(self, fail=False):
        self.requests = []
        self.fail = fail

    async def create(self, model, input, dimensions):
        self.requests.append({"model": model, "input": input, "dimensions": dimensions})
        if self.fail:
            raise RuntimeError("rate limited")
        texts = [input] if isinstance(input, str) else input
        items = [
            SimpleNamespace(index=i, embedding=[float(len(t)), float(i)])
            for i, t in enumerate(texts)
        ]
        return SimpleNamespace(data=list(reversed(items)))


def _openai(api=None):
    api = api or FakeEmbeddingsAPI()
    client = SimpleNamespace(embeddings=api)
    return OpenAIEmbeddingProvider(api_key="sk-test", client=client), api


def test_clean_text():
    assert clean_text("  a \n\n b\tc  ") == "a b c"
    assert clean_text("x" * 20, max_chars=5) == "xxxxx"


def test_openai_batch_realigned_by_index():
    provider, api = _openai()
    vectors = asyncio.run(provider.embed_batch(["aaa", "", "b"]))

    assert api.requests[0]["input"] == ["aaa", "b"]
    assert api.requests[0]["dimensions"] == 1536
    assert vectors == [[3.0, 0.0], [], [1.0, 1.0]]


def test_openai_all_empty_batch_makes_no_request():
    provider, api = _openai()
    assert asyncio.run(provider.embed_batch(["", "   "])) == [[], []]
    assert api.requests == []


def test_openai_embed_single():
    provider, api = _openai()
    assert asyncio.run(provider.embed("hello")) == [5.0, 0.0]
    with pytest.raises(ValueError):
        asyncio.run(provider.embed("   "))


def test_openai_failure_wrapped():
    provider, _ = _openai(FakeEmbeddingsAPI(fail=True))
    with pytest.raises(ExternalServiceError):
        asyncio.run(provider.embed_batch(["text"]))


def test_openai_without_key_is_unavailable():
    provider = OpenAIEmbeddingProvider(api_key=None)
    assert not provider.is_available()
    with pytest.raises(ProviderUnavailableError):
        asyncio.run(provider.embed("hello"))


def test_provider_factory():
    cfg = {"ai": {"api_keys": {"openai": "sk"}}, "embedding": {"provider": "openai", "dimensions": 512}}
    provider = get_embedding_provider(cfg)
    assert isinstance(provider, OpenAIEmbeddingProvider)
    assert provider.dimensions() == 512
    with pytest.raises(ValueError):
        get_embedding_provider({"embedding": {"provider": "word2vec"}})


def _service(batch_size=100, **vectors):
    provider = FakeEmbeddingProvider(vectors)
    index = InMemoryVectorIndex()
    return EmbeddingService(provider, index, batch_size=batch_size), provider, index


def test_ensure_embedded_is_memoized():
    docs = [make_doc("note-a"), make_doc("note-b")]
    service, provider, index = _service(**{"Note A": [1.0, 0.0], "Note B": [0.0, 1.0]})

    assert asyncio.run(service.ensure_embedded(docs)) == 2
    assert asyncio.run(service.ensure_embedded(docs)) == 0
    assert len(provider.batches) == 1
    assert index.get("note-a").vector == [1.0, 0.0]
    assert index.get("note-a").path == "notes/note-a.md"


def test_ensure_embedded_batches_in_order():
    docs = [make_doc(f"n{i}") for i in range(5)]
    service, provider, _ = _service(batch_size=2)
    provider.default = [1.0, 1.0]

    assert asyncio.run(service.ensure_embedded(docs)) == 5
    assert [len(b) for b in provider.batches] == [2, 2, 1]
    assert provider.batches[0][0] == document_text(docs[0])


def test_ensure_embedded_skips_duplicates_and_empty_vectors():
    docs = [make_doc("note-a"), make_doc("note-a"), make_doc("note-b")]
    service, provider, index = _service(**{"Note A": [1.0, 0.0]})

    assert asyncio.run(service.ensure_embedded(docs)) == 1
    assert provider.batches == [[document_text(docs[0]), document_text(docs[2])]]
    assert not service.has_embedding("note-b")


def test_ensure_embedded_requires_provider():
    service = EmbeddingService(FakeEmbeddingProvider(available=False), InMemoryVectorIndex())
    with pytest.raises(ProviderUnavailableError):
        asyncio.run(service.ensure_embedded([make_doc("note-a")]))


def test_ensure_embedded_cancelled_before_batch():
    service, provider, _ = _service()
    token = CancellationToken()
    token.cancel("user abort")
    with pytest.raises(OperationCancelled):
        asyncio.run(service.ensure_embedded([make_doc("note-a")], token))
    assert provider.batches == []


def test_concurrent_ensure_embedded_embeds_once():
    docs = [make_doc("note-a")]
    service, provider, _ = _service(**{"Note A": [1.0, 0.0]})

    async def scenario():
        return await asyncio.gather(service.ensure_embedded(docs), service.ensure_embedded(docs))

    assert sorted(asyncio.run(scenario())) == [0, 1]
    assert len(provider.batches) == 1


def test_find_similar_by_id_excludes_self():
    docs = [make_doc("a"), make_doc("b"), make_doc("c")]
    service, _, _ = _service(A=[1.0, 0.0], B=[0.9, 0.1], C=[0.0, 1.0])
    asyncio.run(service.ensure_embedded(docs))

    results = asyncio.run(service.find_similar_by_id("a", limit=5, threshold=0.5))
    assert [r.id for r in results] == ["b"]
    assert asyncio.run(service.find_similar_by_id("unknown")) == []


def test_find_similar_by_text():
    docs = [make_doc("a"), make_doc("b")]
    service, provider, _ = _service(A=[1.0, 0.0], B=[0.0, 1.0], query=[1.0, 0.1])
    asyncio.run(service.ensure_embedded(docs))

    results = asyncio.run(service.find_similar_by_text("query", threshold=0.5))
    assert [r.id for r in results] == ["a"]


def test_find_similar_by_text_unavailable_or_empty_index():
    service = EmbeddingService(FakeEmbeddingProvider(available=False), InMemoryVectorIndex())
    assert asyncio.run(service.find_similar_by_text("anything")) == []

    service, provider, _ = _service(query=[1.0, 0.0])
    assert asyncio.run(service.find_similar_by_text("query")) == []
    assert provider.queries == []


def test_stats():
    service, _, _ = _service(A=[1.0, 0.0])
    asyncio.run(service.ensure_embedded([make_doc("a")]))
    stats = service.stats()
    assert stats["total_embeddings"] == 1
    assert stats["provider_available"] is True
    assert stats["read_only_index"] is False
    assert service.stored_ids() == ["a"]
