"""
Shared validation utilities for the analysis pipeline.

This module provides common precondition checks so that the similarity
builder, clusterer and embedder reject bad arguments the same way.

Key Features:
- Duplicate detection for selected item ids
- Positive integer checks (dimensionality, iteration budget, limits)
- Square/symmetric matrix validation
- Linkage name validation
"""

import logging
from collections import Counter
from typing import Any, Optional, Sequence

import numpy as np

from cardsort_analysis.DEFAULT_CONSTS import LINKAGE_METHODS

LOGGER = logging.getLogger(__name__)


def validate_unique_ids(item_ids: Sequence[str], name: str = "item_ids") -> None:
    """Validate that an id list holds no duplicates.

    Parameters
    ----------
    item_ids : Sequence[str]
        Ordered ids to check
    name : str
        Name of the list for error messages

    Raises
    ------
    TypeError
        If ``item_ids`` is a plain string instead of a sequence of ids
    ValueError
        If any id appears more than once

    Examples
    --------
    >>> validate_unique_ids(["a", "b"])
    >>> validate_unique_ids(["a", "a"])
    Traceback (most recent call last):
    ...
    ValueError: item_ids contains duplicate ids: ['a']
    """
    if isinstance(item_ids, str):
        raise TypeError(f"{name} must be a sequence of ids, got str")

    duplicates = [item_id for item_id, count in Counter(item_ids).items() if count > 1]
    if duplicates:
        raise ValueError(f"{name} contains duplicate ids: {sorted(duplicates)}")


def validate_positive_int(value: Any, name: str) -> None:
    """Validate that ``value`` is a strictly positive integer.

    Raises
    ------
    TypeError
        If value is not an integer (bools are rejected too)
    ValueError
        If value is zero or negative
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def validate_linkage(linkage: str) -> None:
    """Validate a linkage policy name."""
    if linkage not in LINKAGE_METHODS:
        raise ValueError(
            f"Unknown linkage: {linkage}. Choose one of {', '.join(LINKAGE_METHODS)}"
        )


def validate_square_matrix(
    matrix: Any,
    name: str,
    expected_size: Optional[int] = None,
    check_symmetric: bool = True,
    atol: float = 1e-9,
) -> None:
    """Validate that ``matrix`` is a square (optionally symmetric) 2D array.

    Parameters
    ----------
    matrix : Any
        Object to validate
    name : str
        Name of the matrix for error messages
    expected_size : int, optional
        Required number of rows/columns, if None no check is performed
    check_symmetric : bool
        Whether to require ``matrix == matrix.T`` within ``atol``
    atol : float
        Absolute tolerance of the symmetry check

    Raises
    ------
    TypeError
        If matrix is not a numpy array
    ValueError
        If matrix is not 2D, not square, has the wrong size, contains
        NaN/Inf, or is asymmetric
    """
    if not isinstance(matrix, np.ndarray):
        raise TypeError(f"{name} must be np.ndarray, got {type(matrix)}")

    if matrix.ndim != 2:
        raise ValueError(f"{name} must be 2D, got shape {matrix.shape}")

    if matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"{name} must be square, got shape {matrix.shape}")

    if expected_size is not None and matrix.shape[0] != expected_size:
        raise ValueError(
            f"{name} expected shape ({expected_size}, {expected_size}), got {matrix.shape}"
        )

    if not np.all(np.isfinite(matrix)):
        raise ValueError(f"{name} contains NaN or Inf values")

    if check_symmetric and not np.allclose(matrix, matrix.T, atol=atol, rtol=0.0):
        raise ValueError(f"{name} must be symmetric")
