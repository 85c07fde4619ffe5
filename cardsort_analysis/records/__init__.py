"""Read-only records for card-sorting studies.

This module provides the records the analysis operates on and parsers for the
exported study JSON format.

Examples
--------
>>> from cardsort_analysis.records import load_study, select_item_ids
>>>
>>> study = load_study("study.json")
>>> item_ids = select_item_ids(study.cards, limit=24)
"""

from .sort_records import (
    GroupNode,
    Item,
    Session,
    Study,
    load_study,
    select_item_ids,
)

__all__ = [
    "GroupNode",
    "Item",
    "Session",
    "Study",
    "load_study",
    "select_item_ids",
]
