"""End-to-end SPARQL generation: retrieve context, prompt the model, repair the output."""

import logging
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from sparql_brain.rag_system import RAGSystem

from .llm_client import BaseLLM
from .prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_SOURCE = "knowledge-base"
LEGACY_SOURCE = "legacy"


class GenerationResult(BaseModel):
    """Outcome of one natural-language to SPARQL translation."""
    sparql: str
    raw_response: str
    context_source: str
    kb_docs: int = 0
    provider: str
    model: str
    timestamp: datetime = Field(default_factory=datetime.now)


class SparqlGenerator:
    """Translates questions into SPARQL using retrieved context."""

    def __init__(
        self,
        rag_system: RAGSystem,
        llm: BaseLLM,
        prompt_builder: PromptBuilder,
        fallback_k: int = 3,
    ):
        """Initialize the generator.

        Args:
            rag_system: RAGSystem instance
            llm: LLM client for the configured provider
            prompt_builder: PromptBuilder with loaded templates
            fallback_k: Number of examples for the legacy prompt
        """
        self.rag_system = rag_system
        self.llm = llm
        self.prompt_builder = prompt_builder
        self.fallback_k = fallback_k

    async def build_prompt(self, query: str) -> tuple:
        """Build the prompt for a question.

        Returns:
            Tuple of (prompt, context_source, kb_docs)
        """
        context = await self.rag_system.get_context(query)
        kb_docs = context.metadata.total_docs

        if kb_docs > 0:
            logger.info(
                f"Found {kb_docs} relevant documents "
                f"(vocabularies {len(context.vocabularies)}, patterns {len(context.patterns)}, "
                f"examples {len(context.examples)})"
            )
            prompt = self.prompt_builder.build_knowledge_base_prompt(query, context)
            return prompt, KNOWLEDGE_BASE_SOURCE, kb_docs

        logger.warning("Knowledge base returned nothing, using legacy context")
        vocabulary = self.rag_system.vocabulary_context()
        examples = await self.rag_system.select_examples(query, self.fallback_k)
        prompt = self.prompt_builder.build_legacy_prompt(query, vocabulary, examples)
        return prompt, LEGACY_SOURCE, kb_docs

    async def generate(self, query: Optional[str]) -> GenerationResult:
        """Generate a sanitized SPARQL query for a question.

        Args:
            query: Natural-language question

        Returns:
            GenerationResult

        Raises:
            ValueError: If the question is empty or not a string
            LLMError: If the model call fails
        """
        if not query or not isinstance(query, str):
            raise ValueError("Query is required and must be a string")

        logger.info(f"Incoming query: {query!r}")

        prompt, context_source, kb_docs = await self.build_prompt(query)
        response = await self.llm.invoke(prompt)
        sparql = self.rag_system.sanitize(response.content)

        logger.info(f"Generated SPARQL ({context_source}): {sparql[:200]}")

        return GenerationResult(
            sparql=sparql,
            raw_response=response.content,
            context_source=context_source,
            kb_docs=kb_docs,
            provider=response.provider,
            model=response.model,
        )
