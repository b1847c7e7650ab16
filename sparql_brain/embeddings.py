"""Embedding providers and the shared query embedding cache."""

import logging
import os
from collections import OrderedDict
from typing import Dict, List, Optional

import httpx
from ollama import AsyncClient, ResponseError

from .exceptions import EmbeddingError, ProviderAuthError, ProviderUnavailable

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("ollama", "openrouter", "openai", "github")


class EmbeddingProvider:
    """Capability interface: turn a text into a fixed-length vector."""

    provider_name = "base"

    def __init__(self, model: str):
        self.model = model

    async def embed(self, text: str) -> List[float]:
        """Generate an embedding for a single text.

        Raises:
            ProviderUnavailable: Backend unreachable or unconfigured
            ProviderAuthError: Credentials missing or rejected
        """
        raise NotImplementedError

    async def close(self):
        """Release any held connections."""


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embeddings from a local Ollama server."""

    provider_name = "ollama"

    def __init__(
        self,
        model: str = "nomic-embed-text",
        host: str = "http://localhost:11434",
        timeout: float = 60.0,
        client: Optional[AsyncClient] = None,
    ):
        super().__init__(model)
        self.host = host
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(host=self.host, timeout=self.timeout)
        return self._client

    async def embed(self, text: str) -> List[float]:
        client = self._get_client()
        try:
            response = await client.embed(model=self.model, input=text)
        except (httpx.TransportError, ConnectionError) as e:
            raise ProviderUnavailable(
                f"Cannot reach Ollama at {self.host}: {e}", original_exception=e
            ) from e
        except ResponseError as e:
            if e.status_code == 404 or "not found" in str(e).lower():
                raise ProviderUnavailable(
                    f"Model '{self.model}' not found. Run: ollama pull {self.model}",
                    original_exception=e,
                ) from e
            if e.status_code in (401, 403):
                raise ProviderAuthError(
                    f"Ollama rejected the request: {e}", original_exception=e
                ) from e
            raise ProviderUnavailable(
                f"Ollama embedding request failed: {e}", original_exception=e
            ) from e

        embeddings = response.get("embeddings") or []
        if not embeddings or not embeddings[0]:
            raise EmbeddingError(f"Ollama returned no embedding for model {self.model}")
        return list(embeddings[0])

    async def close(self):
        # ollama.AsyncClient wraps an httpx.AsyncClient
        inner = getattr(self._client, "_client", None)
        if inner is not None:
            await inner.aclose()
        self._client = None


class OpenAICompatibleEmbeddingProvider(EmbeddingProvider):
    """Embeddings from an OpenAI-compatible `/embeddings` endpoint."""

    def __init__(
        self,
        provider_name: str,
        model: str,
        base_url: str,
        api_key: Optional[str],
        credential_name: str,
        extra_headers: Optional[Dict[str, str]] = None,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model)
        self.provider_name = provider_name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.credential_name = credential_name
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        if extra_headers:
            self.headers.update(extra_headers)
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def embed(self, text: str) -> List[float]:
        if not self.api_key:
            raise ProviderAuthError(f"{self.credential_name} not set")

        client = self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": text},
                headers=self.headers,
            )
        except httpx.TransportError as e:
            raise ProviderUnavailable(
                f"Cannot reach {self.provider_name} embeddings API: {e}",
                original_exception=e,
            ) from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(
                f"{self.provider_name} rejected credentials "
                f"(status {response.status_code}). Check {self.credential_name}."
            )
        if response.status_code >= 400:
            raise ProviderUnavailable(
                f"{self.provider_name} embeddings API error: {response.status_code}"
            )

        try:
            return list(response.json()["data"][0]["embedding"])
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(
                f"Malformed embeddings response from {self.provider_name}",
                original_exception=e,
            ) from e

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def create_embedding_provider(config: dict) -> EmbeddingProvider:
    """Build the embedding provider selected by configuration.

    Uses ``embeddings.provider`` when set, otherwise ``llm.provider``.
    Credentials are read from the environment.

    Args:
        config: Configuration dictionary

    Returns:
        EmbeddingProvider for the selected backend

    Raises:
        ProviderUnavailable: If the provider name is not supported
    """
    embeddings_config = config.get("embeddings", {}) or {}
    llm_config = config.get("llm", {}) or {}
    provider = (
        embeddings_config.get("provider") or llm_config.get("provider") or "ollama"
    ).lower()
    timeout = float(embeddings_config.get("timeout", 60))
    site_url = llm_config.get("site_url", "http://localhost:3000")
    site_name = llm_config.get("site_name", "SPARQL Naturalizer")

    logger.info(f"Initializing embeddings provider ({provider})")

    if provider == "ollama":
        return OllamaEmbeddingProvider(
            model=embeddings_config.get("ollama_model", "nomic-embed-text"),
            host=llm_config.get("ollama_host", "http://localhost:11434"),
            timeout=timeout,
        )

    if provider == "openrouter":
        return OpenAICompatibleEmbeddingProvider(
            provider_name="openrouter",
            model=embeddings_config.get("openrouter_model", "openai/text-embedding-3-small"),
            base_url="https://openrouter.ai/api/v1",
            api_key=os.getenv("OPENROUTER_API_KEY"),
            credential_name="OPENROUTER_API_KEY",
            extra_headers={"HTTP-Referer": site_url, "X-Title": site_name},
            timeout=timeout,
        )

    if provider == "openai":
        return OpenAICompatibleEmbeddingProvider(
            provider_name="openai",
            model=embeddings_config.get("openai_model", "text-embedding-3-small"),
            base_url="https://api.openai.com/v1",
            api_key=os.getenv("OPENAI_API_KEY"),
            credential_name="OPENAI_API_KEY",
            timeout=timeout,
        )

    if provider == "github":
        return OpenAICompatibleEmbeddingProvider(
            provider_name="github",
            model=embeddings_config.get("github_model", "text-embedding-3-small"),
            base_url="https://models.github.ai/inference",
            api_key=os.getenv("GITHUB_TOKEN"),
            credential_name="GITHUB_TOKEN (scope: models:read)",
            extra_headers={
                "X-GitHub-Api-Version": "2022-11-28",
                "Accept": "application/vnd.github+json",
                "HTTP-Referer": site_url,
                "X-Title": site_name,
            },
            timeout=timeout,
        )

    raise ProviderUnavailable(f"Unsupported provider for embeddings: {provider}")


class EmbeddingCache:
    """Exact-match text to embedding cache shared by all retrievers.

    Unbounded unless ``max_entries`` is given, in which case the least
    recently used entry is evicted first.
    """

    def __init__(self, max_entries: Optional[int] = None):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, List[float]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: str) -> bool:
        return text in self._entries

    def get(self, text: str) -> Optional[List[float]]:
        embedding = self._entries.get(text)
        if embedding is None:
            self.misses += 1
            return None
        self.hits += 1
        if self.max_entries is not None:
            self._entries.move_to_end(text)
        return embedding

    def set(self, text: str, embedding: List[float]):
        self._entries[text] = embedding
        if self.max_entries is not None:
            self._entries.move_to_end(text)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self):
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    async def get_or_embed(self, text: str, provider: EmbeddingProvider) -> List[float]:
        """Return the cached embedding for ``text`` or compute and store it."""
        embedding = self.get(text)
        if embedding is not None:
            return embedding

        embedding = await provider.embed(text)
        self.set(text, embedding)
        return embedding
