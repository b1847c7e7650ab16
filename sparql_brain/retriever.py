"""Semantic search over the knowledge-base index."""

import logging
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .embeddings import EmbeddingCache, EmbeddingProvider
from .exceptions import DimensionMismatch
from .index import KnowledgeBaseStore
from .models import DocumentType, KnowledgeBaseIndex, RetrievedDocument, SearchFilter
from .similarity import cosine_scores, rank

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """Ranks indexed documents by cosine similarity to a query."""

    def __init__(
        self,
        store: KnowledgeBaseStore,
        embedding_provider: EmbeddingProvider,
        cache: EmbeddingCache,
    ):
        """Initialize the retriever.

        Args:
            store: Knowledge-base store (loaded lazily on first search)
            embedding_provider: Provider used for query embeddings
            cache: Shared embedding cache
        """
        self.store = store
        self.embedding_provider = embedding_provider
        self.cache = cache

        self._matrix_index: Optional[KnowledgeBaseIndex] = None
        self._positions: List[int] = []
        self._matrix: Optional[np.ndarray] = None

    def _embedding_matrix(self, index: KnowledgeBaseIndex) -> Tuple[List[int], np.ndarray]:
        """Stack document embeddings into one matrix, built once per loaded index.

        Returns:
            Tuple of (document positions, matrix with one row per position)
        """
        if self._matrix_index is index:
            return self._positions, self._matrix

        positions = [pos for pos, doc in enumerate(index.documents) if doc.embedding]
        if positions:
            dimension = len(index.documents[positions[0]].embedding)
            for pos in positions:
                length = len(index.documents[pos].embedding)
                if length != dimension:
                    raise DimensionMismatch(dimension, length)
            matrix = np.array(
                [index.documents[pos].embedding for pos in positions], dtype=np.float64
            )
        else:
            matrix = np.empty((0, 0), dtype=np.float64)

        logger.debug(f"Embedding matrix built: {matrix.shape[0]} x {matrix.shape[1]}")
        self._matrix_index = index
        self._positions = positions
        self._matrix = matrix
        return positions, matrix

    async def search(
        self,
        query: str,
        k: int = 5,
        filter: Optional[Union[SearchFilter, Dict]] = None,
    ) -> List[RetrievedDocument]:
        """Return the top-k documents for a query.

        Args:
            query: Search query
            k: Maximum number of results (at least 1)
            filter: Optional exact-match filter on type, category, difficulty

        Returns:
            RetrievedDocument list sorted by descending score

        Raises:
            TypeError: If query is not a string
            ValueError: If k < 1
            EmbeddingError: If the query embedding cannot be generated
            DimensionMismatch: If a document embedding has the wrong length
        """
        if not isinstance(query, str):
            raise TypeError("query must be a string")
        if k < 1:
            raise ValueError("k must be at least 1")

        index = self.store.load()
        if index.is_empty:
            logger.warning("Knowledge base is empty")
            return []

        if isinstance(filter, dict):
            filter = SearchFilter.model_validate(filter)

        positions, matrix = self._embedding_matrix(index)
        rows = [
            row
            for row, pos in enumerate(positions)
            if filter is None or filter.matches(index.documents[pos].metadata)
        ]
        if not rows:
            logger.debug(f"No documents match filter {filter}")
            return []

        query_embedding = await self.cache.get_or_embed(query, self.embedding_provider)

        scores = cosine_scores(matrix[rows], query_embedding)
        results = [
            RetrievedDocument(
                document=index.documents[positions[rows[i]]], score=float(scores[i])
            )
            for i in rank(scores, k)
        ]

        logger.debug(f"Knowledge base search: {query!r} -> {len(results)} documents")
        for position, item in enumerate(results, start=1):
            logger.debug(
                f"  {position}. {item.document.id} ({item.document.metadata.type}) "
                f"score={item.score:.3f}"
            )

        return results

    async def search_by_type(
        self, query: str, doc_type: Union[DocumentType, str], k: int = 3
    ) -> List[RetrievedDocument]:
        """Search restricted to one document type."""
        return await self.search(query, k=k, filter=SearchFilter(type=doc_type))
