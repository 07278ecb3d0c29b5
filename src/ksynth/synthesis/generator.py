"""LLM-backed synthesis generation.

Supported providers form a closed set. Claude goes through the Anthropic
SDK; OpenAI, Gemini and Grok go through the OpenAI SDK (the latter two via
their OpenAI-compatible endpoints).
"""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import ExternalServiceError, ProviderUnavailableError
from ..models import (
    SYNTHESIS_TYPES,
    Document,
    SynthesisRequest,
    SynthesisResult,
    SynthesisType,
    create_synthesis_result,
)
from .prompts import (
    BACKLINKS_GUIDELINE,
    LANGUAGE_NAMES,
    NOTE_SEPARATOR,
    SYNTHESIS_PROMPT,
    TITLE_PROMPT,
    TYPE_INSTRUCTIONS,
    TYPE_PROMPT,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Synthesis Note"
MAX_SUGGESTED_TAGS = 5
MAX_TOKENS = 4000


class AIProvider(str, Enum):
    OPENAI = "openai"
    CLAUDE = "claude"
    GEMINI = "gemini"
    GROK = "grok"


@dataclass(frozen=True)
class ProviderInfo:
    default_model: str
    base_url: str | None = None


AI_PROVIDERS: dict[AIProvider, ProviderInfo] = {
    AIProvider.OPENAI: ProviderInfo("gpt-4o-mini"),
    AIProvider.CLAUDE: ProviderInfo("claude-3-5-haiku-latest"),
    AIProvider.GEMINI: ProviderInfo(
        "gemini-2.0-flash", "https://generativelanguage.googleapis.com/v1beta/openai/"
    ),
    AIProvider.GROK: ProviderInfo("grok-2-latest", "https://api.x.ai/v1"),
}


class SynthesisGenerator(ABC):
    """Produces composite text for a cluster's documents."""

    @abstractmethod
    async def generate(self, request: SynthesisRequest, documents: list[Document]) -> SynthesisResult:
        """Generate the synthesis note."""

    @abstractmethod
    async def suggest_title(self, documents: list[Document]) -> str:
        """Propose a title for the synthesis."""

    @abstractmethod
    async def suggest_type(self, documents: list[Document]) -> SynthesisType:
        """Propose the most fitting synthesis type."""

    @abstractmethod
    def is_available(self) -> bool:
        """True when credentials are configured."""


def suggest_tags(documents: list[Document]) -> list[str]:
    """Tags carried by at least two of the source documents."""
    counts = Counter(tag for doc in documents for tag in sorted(doc.tags))
    return [tag for tag, count in counts.items() if count >= 2][:MAX_SUGGESTED_TAGS]


def build_prompt(request: SynthesisRequest, documents: list[Document]) -> str:
    notes = NOTE_SEPARATOR.join(f"## {d.title}\n\n{d.content}" for d in documents)
    return SYNTHESIS_PROMPT.format(
        instructions=TYPE_INSTRUCTIONS[request.synthesis_type],
        language=LANGUAGE_NAMES.get(request.options.language, "English"),
        backlinks=BACKLINKS_GUIDELINE if request.options.include_backlinks else "",
        notes=notes,
    )


class LLMSynthesisGenerator(SynthesisGenerator):
    """SynthesisGenerator that calls a chat/messages API."""

    def __init__(
        self,
        provider: AIProvider | str,
        api_key: str | None,
        model: str | None = None,
        client: Any = None,
    ):
        self.provider = AIProvider(provider)
        self.api_key = api_key
        self.model = model or AI_PROVIDERS[self.provider].default_model
        self._client = client

    @property
    def client(self):
        """Lazy-create the SDK client for the provider."""
        if self._client is None:
            if not self.api_key:
                raise ProviderUnavailableError(f"No API key configured for {self.provider.value}")
            if self.provider is AIProvider.CLAUDE:
                import anthropic
                self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
            else:
                from openai import AsyncOpenAI
                self._client = AsyncOpenAI(api_key=self.api_key, base_url=AI_PROVIDERS[self.provider].base_url)
        return self._client

    def is_available(self) -> bool:
        return bool(self.api_key) or self._client is not None

    async def generate(self, request: SynthesisRequest, documents: list[Document]) -> SynthesisResult:
        content = await self.complete(build_prompt(request, documents))

        tags = suggest_tags(documents) if request.options.auto_suggest_tags else []
        links = [f"[[{d.title}]]" for d in documents]

        return create_synthesis_result(
            request_id=request.id,
            title=request.target_title or DEFAULT_TITLE,
            content=content,
            source_links=links,
            synthesis_type=request.synthesis_type,
            suggested_tags=tags,
        )

    async def suggest_title(self, documents: list[Document]) -> str:
        titles = ", ".join(d.title for d in documents)
        response = await self.complete(TITLE_PROMPT.format(titles=titles))
        return response.strip().strip("\"'").strip()

    async def suggest_type(self, documents: list[Document]) -> SynthesisType:
        titles = ", ".join(d.title for d in documents)
        response = (await self.complete(TYPE_PROMPT.format(titles=titles))).strip().lower()
        if response in SYNTHESIS_TYPES:
            return response
        return "framework"

    async def complete(self, prompt: str) -> str:
        """Send one user prompt and return the text of the reply."""
        client = self.client
        try:
            if self.provider is AIProvider.CLAUDE:
                response = await client.messages.create(
                    model=self.model,
                    max_tokens=MAX_TOKENS,
                    messages=[{"role": "user", "content": prompt}],
                )
                text = response.content[0].text
            else:
                response = await client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=0.7,
                    max_tokens=MAX_TOKENS,
                )
                text = response.choices[0].message.content
        except Exception as e:
            logger.error(f"{self.provider.value} request failed: {e}")
            raise ExternalServiceError(f"{self.provider.value} request failed: {e}") from e

        if not text:
            raise ExternalServiceError(f"{self.provider.value} returned an empty response")
        return text


def get_synthesis_generator(config: dict[str, Any]) -> LLMSynthesisGenerator:
    """Factory: generator for the provider selected in config."""
    ai_cfg = config.get("ai", {})
    provider = AIProvider(ai_cfg.get("provider", "openai"))
    return LLMSynthesisGenerator(
        provider,
        api_key=ai_cfg.get("api_keys", {}).get(provider.value),
        model=ai_cfg.get("models", {}).get(provider.value),
    )
