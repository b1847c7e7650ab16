"""Unit tests for end-to-end SPARQL generation."""

from pathlib import Path

import pytest
from unittest.mock import AsyncMock, Mock

from naturalizer.exceptions import LLMConnectionError
from naturalizer.generator import KNOWLEDGE_BASE_SOURCE, LEGACY_SOURCE, SparqlGenerator
from naturalizer.llm_client import LLMResponse
from naturalizer.prompt_builder import PromptBuilder
from sparql_brain.models import ContextMetadata, Example, QueryContext
from sparql_brain.sanitizer import DEFAULT_PREFIXES, sanitize

PROMPTS_PATH = Path(__file__).parent.parent / "config" / "prompts.yaml"
RAW_COMPLETION = "Here you go:\n```sparql\nSELECT ?d WHERE { ?d a dcat:Dataset\n```"


@pytest.fixture
def prompt_builder():
    return PromptBuilder(str(PROMPTS_PATH))


@pytest.fixture
def llm():
    llm = Mock()
    llm.invoke = AsyncMock(
        return_value=LLMResponse(content=RAW_COMPLETION, provider="ollama", model="llama3.1:8b")
    )
    return llm


def _rag_system(context):
    rag = Mock()
    rag.get_context = AsyncMock(return_value=context)
    rag.vocabulary_context = Mock(return_value="DCAT PRIMER")
    rag.select_examples = AsyncMock(
        return_value=[Example(query="Datasets sobre salud", sparql="SELECT ?s")]
    )
    rag.sanitize = Mock(side_effect=sanitize)
    return rag


@pytest.fixture
def kb_context():
    return QueryContext(
        vocabularies=["dcat"],
        examples=["```sparql\nSELECT ?kb WHERE { } LIMIT 1\n```"],
        metadata=ContextMetadata(total_docs=2, types={"vocabulary": 1, "example": 1}),
    )


@pytest.mark.asyncio
async def test_knowledge_base_path(kb_context, llm, prompt_builder):
    """Test documents from the knowledge base drive the prompt."""
    rag = _rag_system(kb_context)
    generator = SparqlGenerator(rag, llm, prompt_builder)

    result = await generator.generate("datasets de salud")

    assert result.context_source == KNOWLEDGE_BASE_SOURCE
    assert result.kb_docs == 2
    prompt = llm.invoke.await_args.args[0]
    assert "SELECT ?kb" in prompt
    rag.select_examples.assert_not_called()


@pytest.mark.asyncio
async def test_legacy_path_when_knowledge_base_empty(llm, prompt_builder):
    """Test an empty context switches to the vocabulary and example prompt."""
    rag = _rag_system(QueryContext())
    generator = SparqlGenerator(rag, llm, prompt_builder, fallback_k=2)

    result = await generator.generate("datasets de salud")

    assert result.context_source == LEGACY_SOURCE
    assert result.kb_docs == 0
    rag.select_examples.assert_awaited_once_with("datasets de salud", 2)
    prompt = llm.invoke.await_args.args[0]
    assert "DCAT PRIMER" in prompt
    assert "SELECT ?s" in prompt


@pytest.mark.asyncio
async def test_output_is_sanitized(kb_context, llm, prompt_builder):
    """Test the model output goes through the repair pass."""
    generator = SparqlGenerator(_rag_system(kb_context), llm, prompt_builder)

    result = await generator.generate("datasets")

    assert result.raw_response == RAW_COMPLETION
    assert result.sparql.startswith(DEFAULT_PREFIXES)
    assert result.sparql.endswith("SELECT ?d WHERE { ?d a dcat:Dataset }")
    assert result.provider == "ollama"
    assert result.model == "llama3.1:8b"


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", None, 42])
async def test_invalid_query(query, kb_context, llm, prompt_builder):
    """Test empty or non-string questions are rejected."""
    generator = SparqlGenerator(_rag_system(kb_context), llm, prompt_builder)

    with pytest.raises(ValueError, match="Query is required"):
        await generator.generate(query)
    llm.invoke.assert_not_called()


@pytest.mark.asyncio
async def test_llm_errors_propagate(kb_context, llm, prompt_builder):
    """Test model failures reach the caller."""
    llm.invoke = AsyncMock(side_effect=LLMConnectionError("down", "ollama"))
    generator = SparqlGenerator(_rag_system(kb_context), llm, prompt_builder)

    with pytest.raises(LLMConnectionError):
        await generator.generate("datasets")
