"""
Provider-selectable LLM client.

One client class per backend: Ollama runs locally through its own API, the
cloud providers (OpenRouter, OpenAI, GitHub Models) share the OpenAI-compatible
chat completions endpoint.
"""

import asyncio
import logging
import os
from typing import Any, Dict, Optional

import httpx
from ollama import AsyncClient, ResponseError
from pydantic import BaseModel

from .config import LLMConfig
from .exceptions import LLMAuthError, LLMConnectionError, LLMGenerationError

logger = logging.getLogger(__name__)


class LLMResponse(BaseModel):
    content: str
    provider: str
    model: str


class AvailabilityStatus(BaseModel):
    available: bool
    provider: str
    error: Optional[str] = None


class BaseLLM:
    """Common retry handling for text-in, text-out model calls."""

    provider = "base"

    def __init__(
        self,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 300,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def invoke(self, prompt: str) -> LLMResponse:
        """
        Generate a completion for the prompt.

        Connection errors and timeouts are retried with exponential backoff.

        Raises:
            LLMConnectionError: Cannot reach the provider
            LLMAuthError: Credentials missing or rejected
            LLMGenerationError: Generation failed
        """
        logger.info(f"Calling LLM ({self.provider}, model {self.model})")
        last_exception = None

        for attempt in range(self.max_retries):
            try:
                content = await self._complete(prompt)
                return LLMResponse(content=content, provider=self.provider, model=self.model)

            except (httpx.TransportError, ConnectionError) as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"{type(e).__name__} on attempt {attempt + 1}/{self.max_retries}, "
                        f"retrying in {delay:.2f}s: {e}"
                    )
                    await asyncio.sleep(delay)

        if isinstance(last_exception, httpx.TimeoutException):
            raise LLMGenerationError(
                f"Request timed out after {self.max_retries} attempts", self.provider
            ) from last_exception
        raise LLMConnectionError(
            f"Failed to connect to {self.provider} after {self.max_retries} attempts",
            self.provider,
        ) from last_exception

    async def _complete(self, prompt: str) -> str:
        raise NotImplementedError

    async def check_availability(self) -> AvailabilityStatus:
        raise NotImplementedError

    async def close(self):
        """Release held connections."""


class OllamaLLM(BaseLLM):
    """Local generation through an Ollama server."""

    provider = "ollama"

    def __init__(self, host: str = "http://localhost:11434", timeout: int = 120,
                 client: Optional[AsyncClient] = None, **kwargs):
        super().__init__(**kwargs)
        self.host = host
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(host=self.host, timeout=self.timeout)
        return self._client

    async def _complete(self, prompt: str) -> str:
        options = {
            "temperature": self.temperature,
            "num_predict": self.max_tokens,
            "num_ctx": 8192,
            "repeat_penalty": 1.2,
            "top_p": 0.9,
        }
        try:
            response = await self._get_client().generate(
                model=self.model, prompt=prompt, options=options, stream=False
            )
        except ResponseError as e:
            if e.status_code == 404 or "not found" in str(e).lower():
                raise LLMGenerationError(
                    f"Model '{self.model}' not found. Run: ollama pull {self.model}",
                    self.provider,
                ) from e
            raise LLMGenerationError(f"Generation failed: {e}", self.provider) from e

        return response.get("response", "")

    async def check_availability(self) -> AvailabilityStatus:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.host.rstrip('/')}/api/tags")
        except httpx.HTTPError as e:
            return AvailabilityStatus(available=False, provider=self.provider, error=str(e))

        if response.status_code != 200:
            return AvailabilityStatus(
                available=False, provider=self.provider, error="Ollama server not responding"
            )
        return AvailabilityStatus(available=True, provider=self.provider)

    async def close(self):
        inner = getattr(self._client, "_client", None)
        if inner is not None:
            await inner.aclose()
        self._client = None


class OpenAICompatibleLLM(BaseLLM):
    """Remote generation through an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        provider: str,
        base_url: str,
        api_key: Optional[str],
        credential_name: str,
        extra_headers: Optional[Dict[str, str]] = None,
        max_tokens_field: str = "max_tokens",
        models_url: Optional[str] = None,
        timeout: int = 120,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.credential_name = credential_name
        self.max_tokens_field = max_tokens_field
        self.models_url = models_url
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

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            self.max_tokens_field: self.max_tokens,
        }

    async def _complete(self, prompt: str) -> str:
        if not self.api_key:
            raise LLMAuthError(f"{self.credential_name} not found in environment variables",
                               self.provider)

        response = await self._get_client().post(
            f"{self.base_url}/chat/completions",
            json=self._build_payload(prompt),
            headers=self.headers,
        )

        if response.status_code in (401, 403):
            raise LLMAuthError(
                f"{self.provider} rejected credentials (status {response.status_code}). "
                f"Check {self.credential_name}.",
                self.provider,
            )
        if response.status_code >= 400:
            raise LLMGenerationError(
                f"{self.provider} API error {response.status_code}: {response.text[:200]}",
                self.provider,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMGenerationError(
                f"Malformed completion from {self.provider}", self.provider
            ) from e
        return content or ""

    async def check_availability(self) -> AvailabilityStatus:
        if not self.api_key:
            return AvailabilityStatus(
                available=False,
                provider=self.provider,
                error=f"{self.credential_name} not configured",
            )
        if not self.models_url:
            return AvailabilityStatus(available=True, provider=self.provider)

        try:
            response = await self._get_client().get(self.models_url, headers=self.headers)
        except httpx.HTTPError as e:
            return AvailabilityStatus(available=False, provider=self.provider, error=str(e))

        if response.status_code != 200:
            return AvailabilityStatus(
                available=False,
                provider=self.provider,
                error=f"{self.provider} API error: {response.status_code}",
            )
        return AvailabilityStatus(available=True, provider=self.provider)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def create_llm(config: LLMConfig) -> BaseLLM:
    """Create the LLM client for the configured provider.

    Args:
        config: LLM configuration

    Returns:
        BaseLLM for the selected provider
    """
    common = {
        "model": config.model_name,
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        "max_retries": config.max_retries,
        "retry_delay": config.retry_delay,
    }
    logger.info(f"Initializing LLM: {config.provider}")

    if config.provider == "ollama":
        return OllamaLLM(host=config.ollama_host, timeout=config.timeout, **common)

    if config.provider == "openrouter":
        return OpenAICompatibleLLM(
            provider="openrouter",
            base_url="https://openrouter.ai/api/v1",
            api_key=os.getenv("OPENROUTER_API_KEY"),
            credential_name="OPENROUTER_API_KEY",
            extra_headers={"HTTP-Referer": config.site_url, "X-Title": config.site_name},
            timeout=config.timeout,
            **common,
        )

    if config.provider == "openai":
        return OpenAICompatibleLLM(
            provider="openai",
            base_url="https://api.openai.com/v1",
            api_key=os.getenv("OPENAI_API_KEY"),
            credential_name="OPENAI_API_KEY",
            timeout=config.timeout,
            **common,
        )

    if config.provider == "github":
        return OpenAICompatibleLLM(
            provider="github",
            base_url="https://models.github.ai/inference",
            api_key=os.getenv("GITHUB_TOKEN"),
            credential_name="GITHUB_TOKEN (scope: models:read)",
            extra_headers={
                "X-GitHub-Api-Version": "2022-11-28",
                "Accept": "application/vnd.github+json",
                "HTTP-Referer": config.site_url,
                "X-Title": config.site_name,
            },
            # GitHub Models expects max_completion_tokens
            max_tokens_field="max_completion_tokens",
            models_url="https://models.github.ai/inference/models",
            timeout=config.timeout,
            **common,
        )

    raise ValueError(f"Unsupported LLM provider: {config.provider}")
