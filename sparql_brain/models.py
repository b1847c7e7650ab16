"""Pydantic models for knowledge-base data structures."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DocumentType(str, Enum):
    """Kinds of documents stored in the knowledge base."""

    VOCABULARY = "vocabulary"
    PATTERN = "pattern"
    EXAMPLE = "example"
    DOCUMENTATION = "documentation"


class DocumentMetadata(BaseModel):
    """Categorical metadata attached to a knowledge-base document."""

    model_config = ConfigDict(
        frozen=True, extra="allow", populate_by_name=True, use_enum_values=True
    )

    type: DocumentType
    category: Optional[str] = None
    difficulty: Optional[str] = None
    source: str = ""
    file_path: str = Field(default="", alias="filePath")


class Document(BaseModel):
    """A knowledge-base document with an optional precomputed embedding."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    metadata: DocumentMetadata
    embedding: Optional[List[float]] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata.model_dump(by_alias=True),
            "embedding": self.embedding,
        }


class IndexMetadata(BaseModel):
    """Metadata written by the offline indexing job."""

    model_config = ConfigDict(frozen=True)

    indexed_at: Optional[datetime] = None
    total_documents: int = 0
    embedding_model: str = "unknown"


class KnowledgeBaseIndex(BaseModel):
    """Immutable collection of indexed documents."""

    model_config = ConfigDict(frozen=True)

    documents: List[Document] = Field(default_factory=list)
    metadata: IndexMetadata = Field(default_factory=IndexMetadata)

    @model_validator(mode="after")
    def check_document_count(self) -> "KnowledgeBaseIndex":
        if self.metadata.total_documents != len(self.documents):
            raise ValueError(
                f"metadata.total_documents ({self.metadata.total_documents}) "
                f"does not match document count ({len(self.documents)})"
            )
        return self

    @classmethod
    def empty(cls) -> "KnowledgeBaseIndex":
        """Return an index with no documents."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.documents


class Example(BaseModel):
    """A question/SPARQL pair from the example reference document."""

    model_config = ConfigDict(frozen=True)

    query: str
    sparql: str


class SearchFilter(BaseModel):
    """Exact-match metadata filter; unset fields are not checked."""

    model_config = ConfigDict(use_enum_values=True)

    type: Optional[DocumentType] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None

    def matches(self, metadata: DocumentMetadata) -> bool:
        """Check whether document metadata satisfies every set field."""
        if self.type is not None and metadata.type != self.type:
            return False
        if self.category is not None and metadata.category != self.category:
            return False
        if self.difficulty is not None and metadata.difficulty != self.difficulty:
            return False
        return True


class RetrievedDocument(BaseModel):
    """A document paired with its similarity score for one query."""

    document: Document
    score: float


class ContextMetadata(BaseModel):
    """Provenance for an assembled query context."""

    total_docs: int = 0
    types: Dict[str, int] = Field(default_factory=dict)


class QueryContext(BaseModel):
    """Knowledge-base context assembled for a single question."""

    vocabularies: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    examples: List[str] = Field(default_factory=list)
    metadata: ContextMetadata = Field(default_factory=ContextMetadata)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "vocabularies": self.vocabularies,
            "patterns": self.patterns,
            "examples": self.examples,
            "metadata": {
                "totalDocs": self.metadata.total_docs,
                "types": self.metadata.types,
            },
        }
