"""Custom exceptions for knowledge-base retrieval."""


class RAGError(Exception):
    """Base exception for RAG operations."""

    def __init__(self, message: str, original_exception: Exception = None):
        super().__init__(message)
        self.original_exception = original_exception


class EmbeddingError(RAGError):
    """Raised when embedding generation fails."""
    pass


class ProviderUnavailable(EmbeddingError):
    """Raised when the embedding backend is unreachable or unconfigured."""
    pass


class ProviderAuthError(EmbeddingError):
    """Raised when provider credentials are missing or rejected."""
    pass


class RetrievalError(RAGError):
    """Raised when search operations fail."""
    pass


class DimensionMismatch(RetrievalError):
    """Raised when two vectors of different length are compared."""

    def __init__(self, left: int, right: int):
        super().__init__(
            f"Vectors must have the same length (got {left} and {right})"
        )
        self.left = left
        self.right = right


class IndexNotFound(RAGError):
    """Raised when the persisted vector store file does not exist."""
    pass


class MalformedReferenceDocument(RAGError):
    """Raised when a reference document cannot be read or parsed."""
    pass
