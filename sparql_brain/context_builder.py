"""Assembles knowledge-base context for a question from parallel retrievals."""

import asyncio
import logging
from typing import Dict, List, Tuple

from .models import ContextMetadata, DocumentType, QueryContext, RetrievedDocument

logger = logging.getLogger(__name__)


class ContextBuilder:
    """Runs one retrieval per document category and merges the results."""

    def __init__(self, retriever, config: dict):
        """Initialize the context builder.

        Args:
            retriever: SemanticRetriever instance
            config: Configuration dictionary
        """
        self.retriever = retriever
        self.config = config

        retrieval = config.get("retrieval", {}) or {}
        self.categories: Tuple[Tuple[DocumentType, int], ...] = (
            (DocumentType.VOCABULARY, retrieval.get("vocabulary_k", 2)),
            (DocumentType.PATTERN, retrieval.get("pattern_k", 2)),
            (DocumentType.EXAMPLE, retrieval.get("example_k", 3)),
        )
        for doc_type, k in self.categories:
            if k < 1:
                raise ValueError(f"k for {doc_type.value} must be at least 1, got {k}")

    async def get_context(self, query: str) -> QueryContext:
        """Retrieve vocabularies, patterns and examples for a question.

        A failing category contributes nothing; the others are still used.

        Args:
            query: User question

        Returns:
            QueryContext with per-category contents and provenance counts
        """
        if not isinstance(query, str):
            raise TypeError("query must be a string")

        results = await asyncio.gather(
            *(
                self.retriever.search_by_type(query, doc_type, k)
                for doc_type, k in self.categories
            ),
            return_exceptions=True,
        )

        per_category: Dict[DocumentType, List[RetrievedDocument]] = {}
        for (doc_type, _), result in zip(self.categories, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"{doc_type.value} retrieval failed: {result}")
                result = []
            per_category[doc_type] = result

        merged = [item for items in per_category.values() for item in items]
        types: Dict[str, int] = {}
        for item in merged:
            doc_type = item.document.metadata.type
            types[doc_type] = types.get(doc_type, 0) + 1

        context = QueryContext(
            vocabularies=[i.document.content for i in per_category[DocumentType.VOCABULARY]],
            patterns=[i.document.content for i in per_category[DocumentType.PATTERN]],
            examples=[i.document.content for i in per_category[DocumentType.EXAMPLE]],
            metadata=ContextMetadata(total_docs=len(merged), types=types),
        )

        logger.info(
            f"Context ready: {context.metadata.total_docs} documents "
            f"({len(context.vocabularies)} vocabularies, {len(context.patterns)} patterns, "
            f"{len(context.examples)} examples)"
        )
        return context
