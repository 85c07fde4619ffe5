"""
Low-dimensional item coordinates from a similarity matrix.

The embedding follows classical scaling with a linear dissimilarity:

1. ``D = max(0, 1 - S)`` is used as is, not squared
2. ``B = -1/2 * J D J`` with the centering matrix ``J = I - 1/n``
3. The top-k eigenpairs of B come from deflationary power iteration with a
   fixed iteration budget
4. Item coordinates are ``V[:, c] * sqrt(max(0, eigenvalue[c]))``

Since D is not a squared Euclidean distance, B may have negative eigenvalues;
those axes collapse to zero instead of producing invalid coordinates.

With a fixed ``random_seed`` the output is reproducible. Without one,
coordinates are stable only up to sign and rotation.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from cardsort_analysis.DEFAULT_CONSTS import (
    DEFAULT_N_COMPONENTS,
    DEFAULT_N_ITERATIONS,
    DEFAULT_RANDOM_SEED,
)
from cardsort_analysis.data_validation import (
    validate_positive_int,
    validate_square_matrix,
    validate_unique_ids,
)
from cardsort_analysis.similarity import SimilarityMatrix

LOGGER = logging.getLogger(__name__)

# Norm below which a deflated vector is treated as exhausted
_NULL_TOLERANCE = 1e-12


@dataclass(frozen=True, eq=False)
class Embedding:
    """Item coordinates produced by :class:`SpectralEmbedder`.

    Attributes
    ----------
    item_ids : Tuple[str, ...]
        Row order of ``coordinates``
    coordinates : np.ndarray
        Array of shape (n_items, n_components)
    eigenvalues : np.ndarray
        Eigenvalue of each component, in extraction order, before clamping
    eigenvectors : np.ndarray
        Unit eigenvectors as columns, shape (n_items, n_components)
    """

    item_ids: Tuple[str, ...]
    coordinates: np.ndarray
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray

    @property
    def n_components(self) -> int:
        return self.coordinates.shape[1]

    def coordinate(self, item_id: str) -> Tuple[float, ...]:
        """Return the coordinate tuple of one item."""
        try:
            row = self.item_ids.index(item_id)
        except ValueError:
            raise KeyError(f"Item '{item_id}' is not part of this embedding") from None
        return tuple(float(x) for x in self.coordinates[row])

    def as_dict(self) -> Dict[str, Tuple[float, ...]]:
        """Map each item id to its coordinate tuple."""
        return {
            item_id: tuple(float(x) for x in row)
            for item_id, row in zip(self.item_ids, self.coordinates)
        }


def linear_dissimilarity(similarity: np.ndarray) -> np.ndarray:
    """Return ``max(0, 1 - S)`` elementwise."""
    return np.maximum(0.0, 1.0 - np.asarray(similarity, dtype=np.float64))


def double_center(dissimilarity: np.ndarray) -> np.ndarray:
    """Double-center a dissimilarity matrix: ``B = -1/2 * J D J``.

    Parameters
    ----------
    dissimilarity : np.ndarray
        Square matrix D of shape (n, n)

    Returns
    -------
    np.ndarray
        Symmetric matrix B of shape (n, n)
    """
    n = dissimilarity.shape[0]
    if n == 0:
        return np.zeros((0, 0), dtype=np.float64)
    centering = np.eye(n) - np.full((n, n), 1.0 / n)
    b = -0.5 * centering @ dissimilarity @ centering
    # Symmetric in exact arithmetic; remove rounding asymmetry
    return (b + b.T) / 2.0


def _project_out(vector: np.ndarray, basis: List[np.ndarray]) -> np.ndarray:
    """Subtract the components of ``vector`` along each (unit) basis vector."""
    for u in basis:
        vector = vector - np.dot(vector, u) * u
    return vector


def power_iteration_eigenpairs(
    matrix: np.ndarray,
    n_components: int,
    n_iterations: int = DEFAULT_N_ITERATIONS,
    random_seed: Optional[int] = DEFAULT_RANDOM_SEED,
) -> Tuple[np.ndarray, np.ndarray]:
    """Approximate the leading eigenpairs of a symmetric matrix.

    Each component starts from a random vector, is kept orthogonal to the
    components already found, and is refined for a fixed number of
    power-method rounds. Its eigenvalue is the Rayleigh quotient.

    The solver returns the eigenpairs of largest magnitude it converges to;
    close eigenvalues or many components may not be resolved exactly.

    Parameters
    ----------
    matrix : np.ndarray
        Symmetric matrix of shape (n, n)
    n_components : int
        Number of eigenpairs to extract
    n_iterations : int
        Power-method rounds per component
    random_seed : int, optional
        Seed of the starting vectors; None draws fresh entropy

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        Eigenvalues of shape (n_components,) and unit eigenvectors as columns
        of shape (n, n_components). Components beyond the rank of the space
        come out as zero vectors with eigenvalue 0.
    """
    validate_positive_int(n_components, "n_components")
    validate_positive_int(n_iterations, "n_iterations")

    n = matrix.shape[0]
    rng = np.random.default_rng(random_seed)
    basis: List[np.ndarray] = []
    eigenvalues = np.zeros(n_components, dtype=np.float64)
    eigenvectors = np.zeros((n, n_components), dtype=np.float64)

    for c in range(n_components):
        vector = _project_out(rng.random(n) - 0.5, basis)
        norm = np.linalg.norm(vector)
        if norm < _NULL_TOLERANCE:
            LOGGER.debug(f"Component {c}: no direction left after deflation")
            continue
        vector = vector / norm

        for _ in range(n_iterations):
            product = _project_out(matrix @ vector, basis)
            norm = np.linalg.norm(product)
            if norm < _NULL_TOLERANCE:
                # Vector lies in the null space; eigenvalue 0
                break
            vector = product / norm

        eigenvalues[c] = float(vector @ matrix @ vector)
        eigenvectors[:, c] = vector
        basis.append(vector)
        LOGGER.debug(f"Component {c}: eigenvalue {eigenvalues[c]:.6f}")

    return eigenvalues, eigenvectors


class SpectralEmbedder:
    """Embed items in k dimensions from their similarity matrix.

    Parameters
    ----------
    n_components : int
        Target dimensionality (2 for scatter plots)
    n_iterations : int
        Power-method rounds per component
    random_seed : int, optional
        Seed of the power iteration; None gives non-reproducible output

    Examples
    --------
    >>> embedder = SpectralEmbedder(n_components=2, random_seed=0)
    >>> embedding = embedder.fit_transform(matrix)
    >>> embedding.coordinate("card-1")
    (0.41, -0.08)
    """

    def __init__(
        self,
        n_components: int = DEFAULT_N_COMPONENTS,
        n_iterations: int = DEFAULT_N_ITERATIONS,
        random_seed: Optional[int] = DEFAULT_RANDOM_SEED,
    ):
        """Validate and store the solver settings."""
        validate_positive_int(n_components, "n_components")
        validate_positive_int(n_iterations, "n_iterations")
        self.n_components = n_components
        self.n_iterations = n_iterations
        self.random_seed = random_seed

    def fit_transform(
        self,
        similarity: Union[SimilarityMatrix, np.ndarray],
        item_ids: Optional[Sequence[str]] = None,
    ) -> Embedding:
        """Compute item coordinates.

        Parameters
        ----------
        similarity : SimilarityMatrix or np.ndarray
            Similarity matrix; a raw array may come with ``item_ids``
        item_ids : Sequence[str], optional
            Row ids; defaults to the matrix ids, or to ``"0".."n-1"`` for a
            raw array

        Returns
        -------
        Embedding
            One coordinate tuple per item plus the component eigenvalues
        """
        if isinstance(similarity, SimilarityMatrix):
            if item_ids is None:
                item_ids = similarity.item_ids
            similarity = similarity.similarity

        similarity = np.asarray(similarity, dtype=np.float64)
        validate_square_matrix(similarity, "similarity")
        if item_ids is None:
            item_ids = [str(i) for i in range(similarity.shape[0])]
        validate_unique_ids(item_ids)
        if len(item_ids) != similarity.shape[0]:
            raise ValueError(
                f"Got {len(item_ids)} item_ids for a matrix of shape {similarity.shape}"
            )

        b = double_center(linear_dissimilarity(similarity))
        eigenvalues, eigenvectors = power_iteration_eigenpairs(
            b,
            self.n_components,
            n_iterations=self.n_iterations,
            random_seed=self.random_seed,
        )

        negative = eigenvalues < 0
        if np.any(negative):
            LOGGER.warning(
                f"Clamped {int(negative.sum())} negative eigenvalues to zero: "
                f"{eigenvalues[negative].round(6).tolist()}"
            )
        coordinates = eigenvectors * np.sqrt(np.maximum(0.0, eigenvalues))

        for array in (coordinates, eigenvalues, eigenvectors):
            array.setflags(write=False)

        LOGGER.info(
            f"Embedded {len(item_ids)} items in {self.n_components} dimensions "
            f"(eigenvalues {eigenvalues.round(4).tolist()})"
        )
        return Embedding(
            item_ids=tuple(item_ids),
            coordinates=coordinates,
            eigenvalues=eigenvalues,
            eigenvectors=eigenvectors,
        )


def embed_similarity(
    similarity: Union[SimilarityMatrix, np.ndarray],
    n_components: int = DEFAULT_N_COMPONENTS,
    item_ids: Optional[Sequence[str]] = None,
    n_iterations: int = DEFAULT_N_ITERATIONS,
    random_seed: Optional[int] = DEFAULT_RANDOM_SEED,
) -> Embedding:
    """Convenience wrapper around :class:`SpectralEmbedder`.

    Examples
    --------
    >>> embedding = embed_similarity(matrix, n_components=2)
    >>> embedding.coordinates.shape
    (24, 2)
    """
    embedder = SpectralEmbedder(
        n_components=n_components,
        n_iterations=n_iterations,
        random_seed=random_seed,
    )
    return embedder.fit_transform(similarity, item_ids=item_ids)
