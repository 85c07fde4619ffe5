"""
Hierarchical clustering of sorted items.

This module provides agglomerative clustering over a co-occurrence similarity
matrix with single, complete or average linkage, and utilities to read the
resulting dendrogram:

- build_dendrogram: naive agglomerative clustering into a MergeNode tree
- leaf_order: left-to-right leaf order for heat-map reordering
- cut_dendrogram: flat clusters below a cut height
- to_linkage_matrix: SciPy-compatible (n - 1) x 4 linkage matrix
"""

from .hierarchical_clustering import (
    Linkage,
    MergeNode,
    build_dendrogram,
    cut_dendrogram,
    leaf_order,
    to_linkage_matrix,
)

__all__ = [
    "Linkage",
    "MergeNode",
    "build_dendrogram",
    "cut_dendrogram",
    "leaf_order",
    "to_linkage_matrix",
]
