"""Vector similarity scoring."""

from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike

from .exceptions import DimensionMismatch


def cosine_scores(matrix: ArrayLike, query: ArrayLike) -> np.ndarray:
    """Score every row of a matrix against a query vector.

    Args:
        matrix: Document embeddings, one per row
        query: Query embedding

    Returns:
        Array of similarities in [-1, 1]; 0.0 for rows or queries with zero magnitude

    Raises:
        DimensionMismatch: If the row length differs from the query length
    """
    query = np.asarray(query, dtype=np.float64)
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)

    if matrix.shape[1] != query.shape[0]:
        raise DimensionMismatch(matrix.shape[1], query.shape[0])

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    np.divide(matrix @ query, norms, out=scores, where=norms > 0)

    # Rounding can push identical vectors slightly past 1.0
    return np.clip(scores, -1.0, 1.0)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two equal-length vectors.

    Raises:
        DimensionMismatch: If the vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    return float(cosine_scores([a], b)[0])


def rank(scores: np.ndarray, k: int) -> np.ndarray:
    """Positions of the k highest scores; equal scores keep their original order."""
    return np.argsort(-scores, kind="stable")[:k]
