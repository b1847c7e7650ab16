"""Unit tests for LLM clients."""

import json
import os

import httpx
import pytest
from ollama import ResponseError
from unittest.mock import AsyncMock, Mock, patch

from naturalizer.config import LLMConfig
from naturalizer.exceptions import LLMAuthError, LLMConnectionError, LLMGenerationError
from naturalizer.llm_client import OllamaLLM, OpenAICompatibleLLM, create_llm


def _openai_llm(handler, api_key="sk-test", **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatibleLLM(
        provider="openai",
        base_url="https://api.openai.com/v1",
        api_key=api_key,
        credential_name="OPENAI_API_KEY",
        client=client,
        model="gpt-4o-mini",
        retry_delay=0,
        **kwargs,
    )


def _completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestOpenAICompatibleLLM:
    """Tests for OpenAICompatibleLLM."""

    @pytest.mark.asyncio
    async def test_invoke(self):
        """Test request payload and response parsing."""
        requests = []

        def handler(request):
            requests.append(request)
            return _completion("SELECT ?x WHERE { } LIMIT 1")

        llm = _openai_llm(handler)
        response = await llm.invoke("prompt text")
        await llm.close()

        assert response.content == "SELECT ?x WHERE { } LIMIT 1"
        assert response.provider == "openai"
        assert response.model == "gpt-4o-mini"

        payload = json.loads(requests[0].content)
        assert str(requests[0].url) == "https://api.openai.com/v1/chat/completions"
        assert payload["messages"] == [{"role": "user", "content": "prompt text"}]
        assert payload["max_tokens"] == 300
        assert payload["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_max_tokens_field(self):
        """Test the token limit field name is configurable."""
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return _completion("ok")

        llm = _openai_llm(handler, max_tokens_field="max_completion_tokens")
        await llm.invoke("p")

        assert "max_completion_tokens" in requests[0]
        assert "max_tokens" not in requests[0]

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        """Test a missing credential fails without a request."""
        handler = Mock()
        llm = _openai_llm(handler, api_key=None)

        with pytest.raises(LLMAuthError, match="OPENAI_API_KEY"):
            await llm.invoke("p")
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_credentials(self):
        """Test 401 responses raise LLMAuthError."""
        llm = _openai_llm(lambda request: httpx.Response(401, json={"error": "bad key"}))

        with pytest.raises(LLMAuthError) as exc_info:
            await llm.invoke("p")
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_api_error(self):
        """Test other error statuses raise LLMGenerationError."""
        llm = _openai_llm(lambda request: httpx.Response(429, text="rate limited"))

        with pytest.raises(LLMGenerationError, match="429"):
            await llm.invoke("p")

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        """Test a body without choices raises LLMGenerationError."""
        llm = _openai_llm(lambda request: httpx.Response(200, json={"choices": []}))

        with pytest.raises(LLMGenerationError):
            await llm.invoke("p")

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self):
        """Test connection failures are retried before succeeding."""
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("refused", request=request)
            return _completion("ok")

        llm = _openai_llm(handler, max_retries=3)
        with patch("naturalizer.llm_client.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await llm.invoke("p")

        assert response.content == "ok"
        assert len(attempts) == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        """Test persistent connection failures raise LLMConnectionError."""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        llm = _openai_llm(handler, max_retries=2)
        with patch("naturalizer.llm_client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(LLMConnectionError):
                await llm.invoke("p")

    @pytest.mark.asyncio
    async def test_timeouts_exhausted(self):
        """Test persistent timeouts raise LLMGenerationError."""
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        llm = _openai_llm(handler, max_retries=2)
        with patch("naturalizer.llm_client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(LLMGenerationError, match="timed out"):
                await llm.invoke("p")

    @pytest.mark.asyncio
    async def test_read_errors_retried(self):
        """Test a connection reset mid-response is retried then reported."""
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ReadError("connection reset", request=request)

        llm = _openai_llm(handler, max_retries=2)
        with patch("naturalizer.llm_client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(LLMConnectionError) as exc_info:
                await llm.invoke("p")

        assert len(attempts) == 2
        assert isinstance(exc_info.value.__cause__, httpx.ReadError)

    @pytest.mark.asyncio
    async def test_availability_without_key(self):
        """Test availability reports a missing credential."""
        llm = _openai_llm(Mock(), api_key=None)

        status = await llm.check_availability()

        assert status.available is False
        assert "OPENAI_API_KEY" in status.error

    @pytest.mark.asyncio
    async def test_availability_checks_models_url(self):
        """Test availability queries the models endpoint when configured."""
        llm = _openai_llm(
            lambda request: httpx.Response(503),
            models_url="https://models.github.ai/inference/models",
        )

        status = await llm.check_availability()

        assert status.available is False
        assert "503" in status.error


class TestOllamaLLM:
    """Tests for OllamaLLM."""

    @pytest.fixture
    def client(self):
        client = Mock()
        client.generate = AsyncMock(return_value={"response": "SELECT ?x"})
        return client

    @pytest.mark.asyncio
    async def test_invoke(self, client):
        """Test generation options are passed through."""
        llm = OllamaLLM(client=client, model="llama3.1:8b", max_tokens=256, temperature=0.1)

        response = await llm.invoke("prompt")

        assert response.content == "SELECT ?x"
        assert response.provider == "ollama"
        kwargs = client.generate.await_args.kwargs
        assert kwargs["model"] == "llama3.1:8b"
        assert kwargs["prompt"] == "prompt"
        assert kwargs["options"]["num_predict"] == 256
        assert kwargs["options"]["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_missing_model(self, client):
        """Test a missing model suggests pulling it."""
        client.generate = AsyncMock(side_effect=ResponseError("model not found", 404))
        llm = OllamaLLM(client=client, model="llama3.1:8b")

        with pytest.raises(LLMGenerationError, match="ollama pull llama3.1:8b"):
            await llm.invoke("prompt")

    @pytest.mark.asyncio
    async def test_connection_error_retried(self, client):
        """Test unreachable servers are retried, then reported."""
        client.generate = AsyncMock(side_effect=ConnectionError("Failed to connect to Ollama"))
        llm = OllamaLLM(client=client, model="llama3.1:8b", max_retries=3)

        with patch("naturalizer.llm_client.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(LLMConnectionError):
                await llm.invoke("prompt")
        assert client.generate.await_count == 3


class TestCreateLLM:
    """Tests for provider selection."""

    def test_ollama(self):
        """Test the default provider is a local Ollama client."""
        llm = create_llm(LLMConfig())

        assert isinstance(llm, OllamaLLM)
        assert llm.model == "llama3.1:8b"
        assert llm.host == "http://localhost:11434"

    def test_github(self):
        """Test GitHub Models uses its own token field and headers."""
        with patch.dict(os.environ, {"GITHUB_TOKEN": "ghp-test"}):
            llm = create_llm(LLMConfig(provider="github"))

        assert isinstance(llm, OpenAICompatibleLLM)
        assert llm.api_key == "ghp-test"
        assert llm.max_tokens_field == "max_completion_tokens"
        assert llm.models_url == "https://models.github.ai/inference/models"
        assert llm.headers["Authorization"] == "Bearer ghp-test"

    def test_openrouter(self):
        """Test OpenRouter sends site attribution headers."""
        llm = create_llm(LLMConfig(provider="openrouter", site_name="Catalog"))

        assert llm.provider == "openrouter"
        assert llm.model == "deepseek/deepseek-chat-v3-0324:free"
        assert llm.headers["X-Title"] == "Catalog"
