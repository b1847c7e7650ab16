"""Lazy loading of the persisted knowledge-base vector store."""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from .exceptions import IndexNotFound
from .models import KnowledgeBaseIndex

logger = logging.getLogger(__name__)


class KnowledgeBaseStore:
    """Loads the vector store file once and keeps it for the process lifetime.

    A missing or unreadable file is not fatal: the store serves an empty
    index and logs a warning recommending re-indexing.
    """

    def __init__(self, vector_store_path: Union[str, Path]):
        """Initialize the store.

        Args:
            vector_store_path: Path to the JSON vector store written by the indexer
        """
        self.vector_store_path = Path(vector_store_path)
        self._index: Optional[KnowledgeBaseIndex] = None

    @property
    def is_loaded(self) -> bool:
        return self._index is not None

    def load(self) -> KnowledgeBaseIndex:
        """Return the index, reading it from disk on first use."""
        if self._index is not None:
            return self._index

        try:
            index = self._read()
        except IndexNotFound as e:
            logger.warning(f"{e}. Run the knowledge-base indexer first.")
            index = KnowledgeBaseIndex.empty()
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load vector store {self.vector_store_path}: {e}")
            index = KnowledgeBaseIndex.empty()

        self._index = index
        return index

    def _read(self) -> KnowledgeBaseIndex:
        if not self.vector_store_path.exists():
            raise IndexNotFound(f"Vector store not found: {self.vector_store_path}")

        with open(self.vector_store_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError("Vector store must be a JSON object")

        documents = data.get("documents") or []
        metadata = dict(data.get("metadata") or {})

        declared = metadata.get("total_documents")
        if declared != len(documents):
            logger.warning(
                f"Vector store declares {declared} documents but contains "
                f"{len(documents)}; using the document list"
            )
            metadata["total_documents"] = len(documents)

        index = KnowledgeBaseIndex.model_validate(
            {"documents": documents, "metadata": metadata}
        )

        logger.info(
            f"Vector store loaded: {index.metadata.total_documents} documents, "
            f"model {index.metadata.embedding_model}, "
            f"indexed at {index.metadata.indexed_at}"
        )
        return index

    def reset(self):
        """Forget the loaded index so the next call reads from disk again."""
        self._index = None
