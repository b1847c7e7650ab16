"""High-level knowledge-base retrieval orchestration."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .context_builder import ContextBuilder
from .embeddings import EmbeddingCache, EmbeddingProvider, create_embedding_provider
from .examples import ExampleSelector, load_examples, load_vocabulary_context
from .fallback import KeywordFallbackRetriever
from .index import KnowledgeBaseStore
from .models import Example, IndexMetadata, QueryContext, RetrievedDocument, SearchFilter
from .retriever import SemanticRetriever
from .sanitizer import SparqlSanitizer

logger = logging.getLogger(__name__)


class RAGSystem:
    """Builds the retrieval components once and shares them by reference."""

    def __init__(
        self,
        config: dict,
        embedding_provider: Optional[EmbeddingProvider] = None,
        cache: Optional[EmbeddingCache] = None,
    ):
        """Initialize the RAG system.

        Args:
            config: Configuration dictionary
            embedding_provider: Optional provider; built from config when omitted
            cache: Optional embedding cache; built from config when omitted
        """
        self.config = config

        kb_config = config.get("knowledge_base", {}) or {}
        self.context_dir = Path(kb_config.get("context_dir", "context"))
        self.vector_store_path = self.context_dir / kb_config.get(
            "vector_store_file", "vector-store.json"
        )
        self.examples_path = self.context_dir / kb_config.get("examples_file", "examples.md")
        self.vocabulary_path = self.context_dir / kb_config.get(
            "vocabulary_file", "dcat-vocabulary.md"
        )

        embeddings_config = config.get("embeddings", {}) or {}
        if cache is None:
            cache = EmbeddingCache(embeddings_config.get("cache_max_entries"))
        self.cache = cache
        if embedding_provider is None:
            embedding_provider = create_embedding_provider(config)
        self.embedding_provider = embedding_provider

        self.store = KnowledgeBaseStore(self.vector_store_path)
        self.retriever = SemanticRetriever(self.store, self.embedding_provider, self.cache)
        self.context_builder = ContextBuilder(self.retriever, config)
        self.sanitizer = SparqlSanitizer()

        self._examples: Optional[List[Example]] = None
        self._fallback: Optional[KeywordFallbackRetriever] = None
        self._selector: Optional[ExampleSelector] = None

    @property
    def examples(self) -> List[Example]:
        if self._examples is None:
            self._examples = load_examples(self.examples_path)
            logger.info(f"Loaded {len(self._examples)} reference examples")
        return self._examples

    @property
    def fallback(self) -> KeywordFallbackRetriever:
        if self._fallback is None:
            self._fallback = KeywordFallbackRetriever(self.examples)
        return self._fallback

    @property
    def example_selector(self) -> ExampleSelector:
        if self._selector is None:
            self._selector = ExampleSelector(
                self.examples, self.embedding_provider, self.cache, self.fallback
            )
        return self._selector

    async def get_context(self, query: str) -> QueryContext:
        """Get knowledge-base context for a question."""
        return await self.context_builder.get_context(query)

    async def search(
        self,
        query: str,
        k: int = 5,
        filter: Optional[Union[SearchFilter, Dict]] = None,
    ) -> List[RetrievedDocument]:
        """Search the knowledge base."""
        return await self.retriever.search(query, k=k, filter=filter)

    async def select_examples(self, query: str, k: int = 3) -> List[Example]:
        """Select reference examples, by embeddings when possible."""
        return await self.example_selector.select(query, k)

    def keyword_examples(self, query: str, k: int = 3) -> List[Example]:
        """Select reference examples with the keyword rules only."""
        return self.fallback.search(query, k)

    def vocabulary_context(self) -> str:
        """Read the vocabulary primer used by legacy prompts."""
        return load_vocabulary_context(self.vocabulary_path)

    def sanitize(self, raw: str) -> str:
        """Repair a raw model completion."""
        return self.sanitizer.sanitize(raw)

    def get_stats(self) -> IndexMetadata:
        """Get index metadata, loading the index if needed."""
        return self.store.load().metadata

    async def close(self):
        """Clean up resources."""
        logger.info("Closing RAG system")
        await self.embedding_provider.close()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
