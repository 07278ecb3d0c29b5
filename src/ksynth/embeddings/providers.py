"""Embedding providers: OpenAI (remote) and sentence-transformers (local)."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from ..errors import ExternalServiceError, ProviderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


def clean_text(text: str, max_chars: int = 8000) -> str:
    """Collapse whitespace and cut to the provider-safe budget."""
    return re.sub(r"\s+", " ", text).strip()[:max_chars]


class EmbeddingProvider(ABC):
    """Turns text into fixed-dimension vectors."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed one text."""

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts; output order matches input order."""

    @abstractmethod
    def is_available(self) -> bool:
        """True when the provider is configured and usable."""

    @abstractmethod
    def dimensions(self) -> int:
        """Length of the vectors this provider returns."""


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings through the OpenAI API."""

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_OPENAI_MODEL,
        dimensions: int = 1536,
        max_chars: int = 8000,
        client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self._dimensions = dimensions
        self.max_chars = max_chars
        self._client = client

    @property
    def client(self):
        """Lazy-create the async client."""
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key) or self._client is not None

    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        self._require_available()
        cleaned = clean_text(text, self.max_chars)
        if not cleaned:
            raise ValueError("Cannot embed empty text")

        logger.debug(f"Embedding request: model={self.model} chars={len(cleaned)}")
        response = await self._create(cleaned)
        try:
            return list(response.data[0].embedding)
        except (AttributeError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"Malformed embedding response: {e}") from e

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in one request.

        Empty texts are not sent and come back as empty vectors. The API may
        return items in any order; each carries an ``index`` into the
        submitted list, which is used to put them back in input order.
        """
        self._require_available()
        cleaned = [clean_text(t, self.max_chars) for t in texts]
        positions = [i for i, t in enumerate(cleaned) if t]
        to_embed = [cleaned[i] for i in positions]

        result: list[list[float]] = [[] for _ in texts]
        if not to_embed:
            return result

        logger.debug(f"Batch embedding request: model={self.model} count={len(to_embed)}")
        response = await self._create(to_embed)
        try:
            items = sorted(response.data, key=lambda item: item.index)
            if len(items) != len(to_embed):
                raise ExternalServiceError(
                    f"Embedding response has {len(items)} item(s), expected {len(to_embed)}"
                )
            for item in items:
                result[positions[item.index]] = list(item.embedding)
        except (AttributeError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"Malformed batch embedding response: {e}") from e
        return result

    async def _create(self, payload: str | list[str]):
        try:
            return await self.client.embeddings.create(
                model=self.model,
                input=payload,
                dimensions=self._dimensions,
            )
        except Exception as e:
            logger.error(f"Embedding request failed: {e}")
            raise ExternalServiceError(f"Embedding request failed: {e}") from e

    def _require_available(self) -> None:
        if not self.is_available():
            raise ProviderUnavailableError("OpenAI API key not configured for embeddings")


class SentenceTransformerProvider(EmbeddingProvider):
    """Local embeddings with sentence-transformers."""

    def __init__(self, model_name: str = DEFAULT_LOCAL_MODEL, max_chars: int = 8000):
        self.model_name = model_name
        self.max_chars = max_chars
        self._model = None

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def is_available(self) -> bool:
        return True

    def dimensions(self) -> int:
        return int(self.model.get_sentence_embedding_dimension())

    async def embed(self, text: str) -> list[float]:
        cleaned = clean_text(text, self.max_chars)
        if not cleaned:
            raise ValueError("Cannot embed empty text")
        return self.model.encode(cleaned).tolist()

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        cleaned = [clean_text(t, self.max_chars) for t in texts]
        positions = [i for i, t in enumerate(cleaned) if t]
        result: list[list[float]] = [[] for _ in texts]
        if not positions:
            return result
        encoded = self.model.encode([cleaned[i] for i in positions]).tolist()
        for pos, vector in zip(positions, encoded):
            result[pos] = vector
        return result


def get_embedding_provider(config: dict[str, Any]) -> EmbeddingProvider:
    """Factory: return the embedding provider named in config."""
    emb_cfg = config.get("embedding", {})
    provider = emb_cfg.get("provider", "openai")
    max_chars = emb_cfg.get("max_chars", 8000)

    if provider == "openai":
        return OpenAIEmbeddingProvider(
            api_key=config.get("ai", {}).get("api_keys", {}).get("openai"),
            model=emb_cfg.get("model", DEFAULT_OPENAI_MODEL),
            dimensions=emb_cfg.get("dimensions", 1536),
            max_chars=max_chars,
        )
    elif provider == "sentence-transformers":
        model = emb_cfg.get("model")
        if not model or model == DEFAULT_OPENAI_MODEL:
            model = DEFAULT_LOCAL_MODEL
        return SentenceTransformerProvider(model, max_chars=max_chars)
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")
