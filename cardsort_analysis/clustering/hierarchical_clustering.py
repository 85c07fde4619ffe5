"""
Agglomerative hierarchical clustering over a similarity matrix.

Items are merged bottom-up using the distance ``d(i, j) = 1 - S[i, j]`` and a
selectable linkage:

- single: minimum pairwise distance between two clusters
- complete: maximum pairwise distance
- average: mean pairwise distance (UPGMA)

Every step rescans all pairs of current clusters and merges the closest one;
ties go to the first pair found scanning in ascending index order. The result
is a binary tree of :class:`MergeNode` whose internal heights are the linkage
distances of each merge.

Tree utilities cover leaf ordering (for reordering a heat-map), cutting the
tree into flat clusters, and conversion to a SciPy-style linkage matrix.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from cardsort_analysis.data_validation import (
    validate_linkage,
    validate_square_matrix,
    validate_unique_ids,
)
from cardsort_analysis.similarity import SimilarityMatrix

LOGGER = logging.getLogger(__name__)


class Linkage(Enum):
    """Rule for the distance between two clusters."""

    SINGLE = "single"  # Nearest pair
    COMPLETE = "complete"  # Farthest pair
    AVERAGE = "average"  # Mean over all pairs


@dataclass(frozen=True)
class MergeNode:
    """Node of a dendrogram.

    A leaf wraps one item id and has height 0. An internal node joins two
    subtrees at the linkage distance ``height``.

    Attributes
    ----------
    item_id : str, optional
        Item id of a leaf, None for internal nodes
    left : MergeNode, optional
        First merged subtree
    right : MergeNode, optional
        Second merged subtree
    height : float
        Merge distance, 0 for leaves
    size : int
        Number of leaves under this node
    order : int, optional
        Zero-based merge step that created an internal node
    """

    item_id: Optional[str] = None
    left: Optional["MergeNode"] = None
    right: Optional["MergeNode"] = None
    height: float = 0.0
    size: int = 1
    order: Optional[int] = None

    @classmethod
    def leaf(cls, item_id: str) -> "MergeNode":
        """Create a leaf for ``item_id``."""
        return cls(item_id=item_id)

    @classmethod
    def merge(cls, left: "MergeNode", right: "MergeNode", height: float, order: int) -> "MergeNode":
        """Create the internal node joining ``left`` and ``right``."""
        return cls(
            left=left,
            right=right,
            height=float(height),
            size=left.size + right.size,
            order=order,
        )

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def iter_nodes(self) -> Iterator["MergeNode"]:
        """Yield all nodes of the subtree in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if not node.is_leaf:
                stack.append(node.right)
                stack.append(node.left)

    def leaf_ids(self) -> List[str]:
        """Return the item ids under this node, left to right."""
        return [node.item_id for node in self.iter_nodes() if node.is_leaf]

    def n_internal(self) -> int:
        """Return the number of merges in this subtree."""
        return sum(1 for node in self.iter_nodes() if not node.is_leaf)


def _cluster_distance(distances: np.ndarray, linkage: Linkage) -> float:
    """Reduce the block of pairwise item distances to one cluster distance."""
    if linkage is Linkage.SINGLE:
        return float(distances.min())
    if linkage is Linkage.COMPLETE:
        return float(distances.max())
    return float(distances.mean())


def build_dendrogram(
    similarity: Union[SimilarityMatrix, np.ndarray],
    item_ids: Optional[Sequence[str]] = None,
    linkage: Union[str, Linkage] = "average",
) -> MergeNode:
    """Cluster items agglomeratively into a dendrogram.

    Parameters
    ----------
    similarity : SimilarityMatrix or np.ndarray
        Similarity matrix; a raw array must come with ``item_ids``
    item_ids : Sequence[str], optional
        Leaf ids in row order; taken from ``similarity`` when it is a
        :class:`SimilarityMatrix`
    linkage : str or Linkage
        'single', 'complete' or 'average'

    Returns
    -------
    MergeNode
        Root whose leaves are exactly the items; a single item yields a leaf

    Raises
    ------
    ValueError
        If there are no items, ids and matrix disagree, ids repeat, or the
        linkage is unknown

    Examples
    --------
    >>> root = build_dendrogram(matrix, linkage="average")
    >>> root.leaf_ids()
    ['card-3', 'card-1', 'card-2']
    """
    if isinstance(similarity, SimilarityMatrix):
        if item_ids is None:
            item_ids = similarity.item_ids
        similarity = similarity.similarity
    elif item_ids is None:
        raise ValueError("item_ids is required when similarity is a plain array")

    if not isinstance(linkage, Linkage):
        validate_linkage(linkage)
        linkage = Linkage(linkage)
    validate_unique_ids(item_ids)
    n = len(item_ids)
    if n == 0:
        raise ValueError("Cannot build a dendrogram without items")

    similarity = np.asarray(similarity, dtype=np.float64)
    validate_square_matrix(similarity, "similarity", expected_size=n, check_symmetric=False)

    distances = 1.0 - similarity
    # Each entry pairs a subtree with the matrix indices of its leaves
    clusters: List[Tuple[MergeNode, List[int]]] = [
        (MergeNode.leaf(item_id), [i]) for i, item_id in enumerate(item_ids)
    ]

    step = 0
    while len(clusters) > 1:
        best: Optional[Tuple[int, int]] = None
        best_distance = np.inf
        for a in range(len(clusters)):
            members_a = clusters[a][1]
            for b in range(a + 1, len(clusters)):
                d = _cluster_distance(distances[np.ix_(members_a, clusters[b][1])], linkage)
                if d < best_distance:
                    best_distance = d
                    best = (a, b)

        a, b = best
        node_a, members_a = clusters[a]
        node_b, members_b = clusters[b]
        # Remove the higher index first so the lower one stays valid
        del clusters[b]
        del clusters[a]
        clusters.append((MergeNode.merge(node_a, node_b, best_distance, step), members_a + members_b))
        LOGGER.debug(f"Merge {step}: sizes {node_a.size}+{node_b.size} at height {best_distance:.4f}")
        step += 1

    root = clusters[0][0]
    LOGGER.info(f"Built {linkage.value}-linkage dendrogram over {n} items ({step} merges)")
    return root


def leaf_order(root: Optional[MergeNode], fallback: Sequence[str] = ()) -> List[str]:
    """Return the left-to-right leaf order of a dendrogram.

    Used to reorder the rows and columns of a similarity heat-map so that
    items merged early sit next to each other. Returns ``fallback`` when the
    tree is missing.
    """
    if root is None:
        return list(fallback)
    order = root.leaf_ids()
    return order if order else list(fallback)


def cut_dendrogram(root: MergeNode, height: float) -> List[List[str]]:
    """Cut a dendrogram into flat clusters at ``height``.

    Every maximal subtree whose merge height is at most ``height`` becomes
    one cluster. Clusters are listed left to right, each in leaf order.

    Parameters
    ----------
    root : MergeNode
        Dendrogram root
    height : float
        Cut height on the distance scale

    Returns
    -------
    List[List[str]]
        Item ids of each cluster
    """
    clusters = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf or node.height <= height:
            clusters.append(node.leaf_ids())
        else:
            stack.append(node.right)
            stack.append(node.left)
    return clusters


def to_linkage_matrix(root: MergeNode, item_ids: Sequence[str]) -> np.ndarray:
    """Convert a dendrogram to a SciPy-style linkage matrix.

    Row ``k`` describes merge step ``k`` as ``[idx_a, idx_b, height, size]``
    where leaves are numbered by their position in ``item_ids`` and the
    cluster created at step ``k`` is numbered ``n + k``.

    Parameters
    ----------
    root : MergeNode
        Dendrogram built by :func:`build_dendrogram`
    item_ids : Sequence[str]
        Leaf ids in matrix order

    Returns
    -------
    np.ndarray
        Array of shape (n - 1, 4)
    """
    n = len(item_ids)
    leaf_index = {item_id: i for i, item_id in enumerate(item_ids)}
    internal = sorted(
        (node for node in root.iter_nodes() if not node.is_leaf),
        key=lambda node: node.order,
    )
    if len(internal) != n - 1:
        raise ValueError(f"Dendrogram has {len(internal)} merges, expected {n - 1}")

    node_index = {}
    for node in root.iter_nodes():
        if node.is_leaf:
            if node.item_id not in leaf_index:
                raise ValueError(f"Leaf '{node.item_id}' is not listed in item_ids")
            node_index[id(node)] = leaf_index[node.item_id]
    for k, node in enumerate(internal):
        node_index[id(node)] = n + k

    matrix = np.zeros((max(n - 1, 0), 4), dtype=np.float64)
    for k, node in enumerate(internal):
        a, b = sorted((node_index[id(node.left)], node_index[id(node.right)]))
        matrix[k] = (a, b, node.height, node.size)
    return matrix
