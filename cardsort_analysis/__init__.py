"""
Card Sort Analysis - Similarity, clustering and embedding of card-sorting studies.

This package derives quantitative relationships between sorted items from
participants' nested groupings, including:

- Records: items, group forests, sessions and study JSON import
- Similarity: co-occurrence similarity matrices over a selection of items
- Clustering: agglomerative dendrograms with single/complete/average linkage
- Embeddings: 2-D coordinates via double-centering and power iteration
- Analysis: configured, memoized end-to-end runs
- Export: DataFrame and CSV views of the outputs
"""

__version__ = "1.0.0"

from cardsort_analysis.DEFAULT_CONSTS import (  # noqa: E402
    DEFAULT_EXPORT_KEYS,
    DEFAULT_STUDY_KEYS,
    ExportKeys,
    StudyKeys,
)

__all__ = [
    "DEFAULT_EXPORT_KEYS",
    "DEFAULT_STUDY_KEYS",
    "ExportKeys",
    "StudyKeys",
]
