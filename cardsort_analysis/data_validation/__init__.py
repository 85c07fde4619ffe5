"""Precondition checks for cardsort_analysis.

Key Features:
- Duplicate id detection
- Positive integer checks
- Square/symmetric matrix validation
- Linkage name validation

Examples
--------
>>> from cardsort_analysis.data_validation import validate_unique_ids
>>>
>>> validate_unique_ids(["card-1", "card-2"])  # Should not raise
"""

from .validation_utils import (
    validate_linkage,
    validate_positive_int,
    validate_square_matrix,
    validate_unique_ids,
)

__all__ = [
    "validate_linkage",
    "validate_positive_int",
    "validate_square_matrix",
    "validate_unique_ids",
]
