"""Integration tests for the RAG system facade."""

import json
import shutil
from pathlib import Path

import pytest
from unittest.mock import AsyncMock, Mock

from sparql_brain.embeddings import EmbeddingCache, OllamaEmbeddingProvider
from sparql_brain.exceptions import ProviderUnavailable
from sparql_brain.rag_system import RAGSystem
from sparql_brain.examples import VOCABULARY_UNAVAILABLE

CONTEXT_DIR = Path(__file__).parent.parent / "context"


@pytest.fixture
def context_dir(tmp_path):
    shutil.copy(CONTEXT_DIR / "examples.md", tmp_path / "examples.md")
    shutil.copy(CONTEXT_DIR / "dcat-vocabulary.md", tmp_path / "dcat-vocabulary.md")
    return tmp_path


@pytest.fixture
def provider():
    provider = Mock()
    provider.embed = AsyncMock(return_value=[1.0, 0.0])
    provider.close = AsyncMock()
    return provider


def _config(context_dir):
    return {"knowledge_base": {"context_dir": str(context_dir)}}


def _write_store(context_dir):
    documents = [
        {
            "id": "vocab-dataset",
            "content": "dcat:Dataset",
            "metadata": {"type": "vocabulary", "source": "vocab", "filePath": "vocab.md"},
            "embedding": [1.0, 0.0],
        },
        {
            "id": "example-health",
            "content": "```sparql\nSELECT ?h WHERE { } LIMIT 1\n```",
            "metadata": {"type": "example", "source": "examples", "filePath": "ex.md"},
            "embedding": [0.6, 0.8],
        },
    ]
    data = {
        "documents": documents,
        "metadata": {"total_documents": 2, "embedding_model": "nomic-embed-text"},
    }
    (context_dir / "vector-store.json").write_text(json.dumps(data), encoding="utf-8")


@pytest.mark.asyncio
async def test_context_from_index(context_dir, provider):
    """Test context assembly over a real vector store file."""
    _write_store(context_dir)

    async with RAGSystem(_config(context_dir), embedding_provider=provider) as rag:
        context = await rag.get_context("datasets")

        assert context.metadata.total_docs == 2
        assert context.metadata.types == {"vocabulary": 1, "example": 1}
        assert rag.get_stats().embedding_model == "nomic-embed-text"
        assert "datasets" in rag.cache

    provider.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_missing_index_is_empty(context_dir, provider):
    """Test a missing vector store gives an empty context."""
    rag = RAGSystem(_config(context_dir), embedding_provider=provider)

    context = await rag.get_context("datasets")

    assert context.metadata.total_docs == 0
    assert rag.get_stats().total_documents == 0


@pytest.mark.asyncio
async def test_select_examples_falls_back(context_dir, provider):
    """Test example selection survives an embedding outage."""
    provider.embed = AsyncMock(side_effect=ProviderUnavailable("down"))
    rag = RAGSystem(_config(context_dir), embedding_provider=provider)

    selected = await rag.select_examples("datasets about health", k=3)

    assert [ex.query for ex in selected] == [
        rag.examples[2].query,
        rag.examples[5].query,
    ]


def test_keyword_examples(context_dir, provider):
    """Test keyword selection over the bundled examples."""
    rag = RAGSystem(_config(context_dir), embedding_provider=provider)

    selected = rag.keyword_examples("¿Cuántos datasets hay?", k=3)

    assert selected == [rag.examples[3]]


def test_vocabulary_context(context_dir, tmp_path, provider):
    """Test the vocabulary primer is read from the context directory."""
    rag = RAGSystem(_config(context_dir), embedding_provider=provider)
    assert "dcat:Dataset" in rag.vocabulary_context()

    missing = RAGSystem(_config(tmp_path / "nowhere"), embedding_provider=provider)
    assert missing.vocabulary_context() == VOCABULARY_UNAVAILABLE


def test_shared_cache_is_injected(context_dir, provider):
    """Test an injected cache is shared with the retriever and selector."""
    cache = EmbeddingCache(max_entries=10)
    rag = RAGSystem(_config(context_dir), embedding_provider=provider, cache=cache)

    assert rag.cache is cache
    assert rag.retriever.cache is cache
    assert rag.example_selector.cache is cache


def test_builds_provider_from_config(context_dir):
    """Test the provider and cache bound come from configuration."""
    config = _config(context_dir)
    config["embeddings"] = {"cache_max_entries": 50}

    rag = RAGSystem(config)

    assert isinstance(rag.embedding_provider, OllamaEmbeddingProvider)
    assert rag.cache.max_entries == 50


def test_sanitize(context_dir, provider):
    """Test the facade exposes the repair pass."""
    rag = RAGSystem(_config(context_dir), embedding_provider=provider)

    assert rag.sanitize("SELECT ?x WHERE { ?x ?p ?o").endswith("SELECT ?x WHERE { ?x ?p ?o }")
