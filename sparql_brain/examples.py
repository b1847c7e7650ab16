"""Reference documents: example questions and the vocabulary primer."""

import asyncio
import logging
import re
from pathlib import Path
from typing import List, Union

from .embeddings import EmbeddingCache, EmbeddingProvider
from .exceptions import MalformedReferenceDocument, RAGError
from .fallback import KeywordFallbackRetriever
from .models import Example
from .similarity import cosine_scores, rank

logger = logging.getLogger(__name__)

# **Pregunta:** "text" ... ```sparql\n<query>```
EXAMPLE_PATTERN = re.compile(
    r'\*\*(?:Pregunta|Question):\*\*\s+"([^"]+)"[\s\S]*?```sparql\n([\s\S]*?)```'
)

VOCABULARY_UNAVAILABLE = "Error: No se pudo cargar el contexto DCAT"


def parse_examples(content: str) -> List[Example]:
    """Extract question/SPARQL pairs from markdown; unmatched blocks are skipped."""
    examples = []
    for match in EXAMPLE_PATTERN.finditer(content):
        sparql = match.group(2).strip()
        if not sparql:
            logger.debug(f"Skipping example without query body: {match.group(1)!r}")
            continue
        examples.append(Example(query=match.group(1), sparql=sparql))
    return examples


def _read_reference(path: Path) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedReferenceDocument(
            f"Cannot read reference document {path}: {e}", original_exception=e
        ) from e


def load_examples(path: Union[str, Path]) -> List[Example]:
    """Load examples from the reference document.

    Returns an empty list when the file is missing or unreadable.
    """
    try:
        content = _read_reference(Path(path))
    except MalformedReferenceDocument as e:
        logger.warning(f"No examples loaded: {e}")
        return []

    examples = parse_examples(content)
    if not examples:
        logger.warning(f"No examples found in {path}")
    return examples


def load_vocabulary_context(path: Union[str, Path]) -> str:
    """Load the DCAT vocabulary primer injected into legacy prompts."""
    try:
        return _read_reference(Path(path))
    except MalformedReferenceDocument as e:
        logger.error(f"Error loading DCAT context: {e}")
        return VOCABULARY_UNAVAILABLE


class ExampleSelector:
    """Selects examples by embedding similarity, degrading to keyword rules."""

    def __init__(
        self,
        examples: List[Example],
        embedding_provider: EmbeddingProvider,
        cache: EmbeddingCache,
        fallback: KeywordFallbackRetriever,
    ):
        self.examples = examples
        self.embedding_provider = embedding_provider
        self.cache = cache
        self.fallback = fallback

    async def _embed_examples(self) -> List[List[float]]:
        """Embed every example question concurrently through the cache.

        If one embedding fails the others are cancelled before the error
        propagates.
        """
        tasks = [
            asyncio.ensure_future(self.cache.get_or_embed(example.query, self.embedding_provider))
            for example in self.examples
        ]
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def select(self, query: str, k: int = 3) -> List[Example]:
        """Return the k examples whose questions are closest to the query."""
        if not self.examples:
            logger.warning("No examples found, using empty list")
            return []

        try:
            query_embedding = await self.cache.get_or_embed(query, self.embedding_provider)
            example_embeddings = await self._embed_examples()
            scores = cosine_scores(example_embeddings, query_embedding)
        except RAGError as e:
            logger.error(f"Embedding selection failed, falling back to keyword matching: {e}")
            return self.fallback.search(query, k)

        top = rank(scores, k)

        logger.info(f"Selected {len(top)} relevant examples using embeddings")
        for idx in top:
            logger.debug(f"  {idx}: {self.examples[idx].query[:50]!r} (score: {scores[idx]:.3f})")

        return [self.examples[idx] for idx in top]
