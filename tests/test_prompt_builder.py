"""Unit tests for prompt construction."""

from pathlib import Path

import pytest

from naturalizer.prompt_builder import PromptBuilder, extract_sparql_block
from sparql_brain.models import ContextMetadata, Example, QueryContext

PROMPTS_PATH = Path(__file__).parent.parent / "config" / "prompts.yaml"


def _markdown(title, query):
    return f"# {title}\n\nExplanation of {title}.\n\n```sparql\n{query}\n```\n\nMore prose."


@pytest.fixture
def builder():
    return PromptBuilder(str(PROMPTS_PATH))


@pytest.fixture
def context():
    return QueryContext(
        vocabularies=["dcat:Dataset is the main class"],
        patterns=[
            _markdown("Text filter", "FILTER(CONTAINS(LCASE(?title), \"x\"))"),
            "A pattern without code",
            _markdown("Publisher", "?dataset dct:publisher ?pub ."),
            _markdown("Format", "?dist dct:format ?format ."),
        ],
        examples=[
            _markdown("Health", "SELECT ?health WHERE { } LIMIT 1"),
            _markdown("Count", "SELECT (COUNT(?d) AS ?n) WHERE { } LIMIT 1"),
            _markdown("Recent", "SELECT ?recent WHERE { } LIMIT 1"),
        ],
        metadata=ContextMetadata(total_docs=8),
    )


def test_extract_sparql_block():
    """Test the first fenced block is returned without prose."""
    assert extract_sparql_block(_markdown("t", "SELECT ?x")) == "SELECT ?x"
    assert extract_sparql_block("no code here") is None


def test_knowledge_base_prompt(builder, context):
    """Test the prompt contains the question and the first two examples."""
    prompt = builder.build_knowledge_base_prompt("datasets de salud", context)

    assert 'USER QUESTION: "datasets de salud"' in prompt
    assert "SELECT ?health" in prompt
    assert "COUNT(?d)" in prompt
    assert "SELECT ?recent" not in prompt
    assert "Explanation of" not in prompt
    assert "WHERE {\n" in prompt


def test_pattern_templates(builder, context):
    """Test only code from the first two patterns with code is kept."""
    patterns = builder.pattern_templates(context)

    assert patterns == [
        'FILTER(CONTAINS(LCASE(?title), "x"))',
        "?dataset dct:publisher ?pub .",
    ]


def test_knowledge_base_prompt_without_patterns(builder):
    """Test a context without pattern code still renders."""
    context = QueryContext(examples=[_markdown("Health", "SELECT ?h")])

    prompt = builder.build_knowledge_base_prompt("q", context)

    assert "USEFUL PATTERNS: none" in prompt
    assert "SELECT ?h" in prompt


def test_legacy_prompt(builder):
    """Test legacy prompts number the examples and include the primer."""
    examples = [
        Example(query="Datasets sobre salud", sparql="SELECT ?a"),
        Example(query="Datasets en CSV", sparql="SELECT ?b"),
    ]

    prompt = builder.build_legacy_prompt("¿Datos de salud?", "VOCABULARIO DCAT", examples)

    assert "VOCABULARIO DCAT" in prompt
    assert 'Ejemplo 1:\nPregunta: "Datasets sobre salud"\nRespuesta SPARQL:\nSELECT ?a' in prompt
    assert "Ejemplo 2:" in prompt
    assert 'PREGUNTA DEL USUARIO: "¿Datos de salud?"' in prompt


def test_legacy_prompt_without_examples(builder):
    """Test legacy prompts render with no examples."""
    prompt = builder.build_legacy_prompt("q", "primer", [])

    assert "Ejemplo 1" not in prompt
    assert 'PREGUNTA DEL USUARIO: "q"' in prompt
