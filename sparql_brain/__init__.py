"""Knowledge-base retrieval and response repair for SPARQL generation."""

from .context_builder import ContextBuilder
from .embeddings import (
    EmbeddingCache,
    EmbeddingProvider,
    OllamaEmbeddingProvider,
    OpenAICompatibleEmbeddingProvider,
    create_embedding_provider,
)
from .examples import ExampleSelector, load_examples, load_vocabulary_context
from .exceptions import (
    DimensionMismatch,
    EmbeddingError,
    IndexNotFound,
    MalformedReferenceDocument,
    ProviderAuthError,
    ProviderUnavailable,
    RAGError,
    RetrievalError,
)
from .fallback import KeywordFallbackRetriever, KeywordRule
from .index import KnowledgeBaseStore
from .models import (
    ContextMetadata,
    Document,
    DocumentMetadata,
    DocumentType,
    Example,
    IndexMetadata,
    KnowledgeBaseIndex,
    QueryContext,
    RetrievedDocument,
    SearchFilter,
)
from .rag_system import RAGSystem
from .retriever import SemanticRetriever
from .sanitizer import SparqlSanitizer, sanitize
from .similarity import cosine_similarity

__all__ = [
    # Main system
    "RAGSystem",
    # Components
    "KnowledgeBaseStore",
    "SemanticRetriever",
    "KeywordFallbackRetriever",
    "KeywordRule",
    "ExampleSelector",
    "ContextBuilder",
    "SparqlSanitizer",
    "EmbeddingCache",
    "EmbeddingProvider",
    "OllamaEmbeddingProvider",
    "OpenAICompatibleEmbeddingProvider",
    "create_embedding_provider",
    "cosine_similarity",
    "sanitize",
    "load_examples",
    "load_vocabulary_context",
    # Models
    "Document",
    "DocumentMetadata",
    "DocumentType",
    "Example",
    "IndexMetadata",
    "KnowledgeBaseIndex",
    "QueryContext",
    "ContextMetadata",
    "RetrievedDocument",
    "SearchFilter",
    # Exceptions
    "RAGError",
    "EmbeddingError",
    "ProviderUnavailable",
    "ProviderAuthError",
    "RetrievalError",
    "DimensionMismatch",
    "IndexNotFound",
    "MalformedReferenceDocument",
]

__version__ = "0.1.0"
