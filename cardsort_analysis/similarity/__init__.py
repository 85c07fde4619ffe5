"""Co-occurrence similarity matrices from card-sorting sessions.

Examples
--------
>>> from cardsort_analysis.similarity import build_similarity_matrix
>>>
>>> matrix = build_similarity_matrix(study.cards, study.sessions, item_ids)
>>> print(matrix.similarity)
"""

from .similarity_builder import (
    SimilarityBuilder,
    SimilarityMatrix,
    build_similarity_matrix,
)

__all__ = [
    "SimilarityBuilder",
    "SimilarityMatrix",
    "build_similarity_matrix",
]
