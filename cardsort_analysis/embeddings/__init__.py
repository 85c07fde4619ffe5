"""
Spectral embedding of sorted items.

This module projects a co-occurrence similarity matrix into k dimensions
(2 for scatter plots) via double-centering and deflationary power iteration.
"""

from .spectral_embedder import (
    Embedding,
    SpectralEmbedder,
    double_center,
    embed_similarity,
    linear_dissimilarity,
    power_iteration_eigenpairs,
)

__all__ = [
    "Embedding",
    "SpectralEmbedder",
    "double_center",
    "embed_similarity",
    "linear_dissimilarity",
    "power_iteration_eigenpairs",
]
