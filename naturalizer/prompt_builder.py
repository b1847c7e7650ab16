"""Utility for building generation prompts from templates and retrieved context."""

import re
from typing import List, Optional

import yaml

from sparql_brain.models import Example, QueryContext

SPARQL_BLOCK_PATTERN = re.compile(r"```sparql\n([\s\S]*?)```")


def extract_sparql_block(text: str) -> Optional[str]:
    """Return the first fenced sparql block in a document, if any."""
    match = SPARQL_BLOCK_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).strip()


class PromptBuilder:
    """Builds SPARQL generation prompts using templates and context."""

    def __init__(self, prompts_config_path: str):
        """Initialize the prompt builder.

        Args:
            prompts_config_path: Path to prompts.yaml configuration file
        """
        with open(prompts_config_path, 'r', encoding='utf-8') as f:
            self.config = yaml.safe_load(f)

    def build_knowledge_base_prompt(self, query: str, context: QueryContext) -> str:
        """Build the prompt used when the knowledge base returned documents.

        Only the SPARQL code of retrieved examples is kept; explanations are
        dropped to keep the model focused on the query shape.

        Args:
            query: User question
            context: Context from the RAG system

        Returns:
            Complete prompt string
        """
        examples = [
            block for block in (extract_sparql_block(ex) for ex in context.examples) if block
        ][:3]

        examples_text = ""
        if examples:
            examples_text = "\n" + "\n\n".join(f"\n{ex}" for ex in examples[:2])

        patterns = self.pattern_templates(context)
        patterns_text = "\n" + "\n\n".join(patterns) if patterns else " none"

        return self.config['knowledge_base_prompt'].format(
            patterns=patterns_text,
            examples=examples_text,
            query=query,
        )

    def pattern_templates(self, context: QueryContext) -> List[str]:
        """Extract query templates from retrieved pattern documents."""
        patterns = [
            block for block in (extract_sparql_block(p) for p in context.patterns) if block
        ]
        return patterns[:2]

    def build_legacy_prompt(
        self, query: str, vocabulary_context: str, examples: List[Example]
    ) -> str:
        """Build the prompt used when the knowledge base is empty.

        Args:
            query: User question
            vocabulary_context: DCAT vocabulary primer
            examples: Selected reference examples

        Returns:
            Complete prompt string
        """
        examples_text = "\n\n".join(
            self.config['legacy_example'].format(
                number=idx, query=example.query, sparql=example.sparql
            )
            for idx, example in enumerate(examples, start=1)
        )

        return self.config['legacy_prompt'].format(
            vocabulary_context=vocabulary_context,
            examples=examples_text,
            query=query,
        )
