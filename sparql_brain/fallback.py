"""Deterministic keyword-based example selection."""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .models import Example

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeywordRule:
    """Maps literal substrings to positions in the example sequence."""

    terms: Tuple[str, ...]
    example_indices: Tuple[int, ...]


# Indices point into the example reference document; order matters.
DEFAULT_KEYWORD_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("todos", "listar", "dame", "list", "give me", "all datasets"), (0,)),
    KeywordRule(("csv", "formato", "json", "xml", "format"), (1, 6)),
    KeywordRule(("salud", "sanidad", "sanitario", "health"), (2, 5)),
    KeywordRule(("cuantos", "cuántos", "total", "count", "contar", "how many"), (3,)),
    KeywordRule(
        (
            "fecha", "año", "2023", "2024", "publicado", "reciente",
            "date", "year", "published", "recent",
        ),
        (4, 8),
    ),
    KeywordRule(
        (
            "ministerio", "gobierno", "organismo", "publicador",
            "ministry", "government", "publisher",
        ),
        (5,),
    ),
    KeywordRule(
        (
            "categoria", "categoría", "tema", "medio ambiente",
            "category", "theme", "environment",
        ),
        (7,),
    ),
    KeywordRule(("licencia", "creative commons", "license"), (9,)),
)

# "Dame todos los datasets", "Busca datasets por formato", "Datasets sobre salud"
DEFAULT_EXAMPLE_INDICES: Tuple[int, ...] = (0, 1, 2)


class KeywordFallbackRetriever:
    """Selects examples by substring rules when semantic retrieval is unavailable."""

    def __init__(
        self,
        examples: Sequence[Example],
        rules: Sequence[KeywordRule] = DEFAULT_KEYWORD_RULES,
        default_indices: Sequence[int] = DEFAULT_EXAMPLE_INDICES,
    ):
        self.examples = list(examples)
        self.rules = tuple(rules)
        self.default_indices = tuple(default_indices)

    def select_indices(self, query: str) -> List[int]:
        """Return matching example positions in rule order, without duplicates."""
        query_lower = query.lower()
        selected = {}

        for rule in self.rules:
            if any(term in query_lower for term in rule.terms):
                for idx in rule.example_indices:
                    if 0 <= idx < len(self.examples):
                        selected.setdefault(idx, None)
                    else:
                        logger.debug(f"Skipping out-of-range example index {idx}")

        if not selected:
            for idx in self.default_indices:
                if 0 <= idx < len(self.examples):
                    selected.setdefault(idx, None)

        return list(selected)

    def search(self, query: str, k: int = 3) -> List[Example]:
        """Select up to k examples for a query.

        Args:
            query: User question
            k: Maximum number of examples

        Returns:
            Examples in selection order
        """
        if k < 0:
            raise ValueError("k must be non-negative")

        indices = self.select_indices(query)[:k]
        selected = [self.examples[idx] for idx in indices]

        logger.info(f"Selected {len(selected)} relevant examples (keyword matching)")
        return selected
