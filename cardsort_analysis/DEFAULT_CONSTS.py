"""Shared key constants and numeric defaults for card-sort analysis.

This module defines frozen-dataclass constants that act as the single source
of truth for string-keyed interfaces shared across sub-packages:

* :data:`DEFAULT_STUDY_KEYS`: keys of the exported study JSON consumed by
  :mod:`cardsort_analysis.records`.
* :data:`DEFAULT_EXPORT_KEYS`: column names written by
  :mod:`cardsort_analysis.export`.

Overriding defaults
-------------------
Both singletons are instances of ``frozen=True`` dataclasses, so they cannot
be mutated.  To use non-default column names for a single export call, create
a modified copy with :func:`dataclasses.replace`::

    import dataclasses
    from cardsort_analysis.DEFAULT_CONSTS import DEFAULT_EXPORT_KEYS

    export_keys = dataclasses.replace(DEFAULT_EXPORT_KEYS, label="Tarjeta")
"""

from dataclasses import dataclass
from typing import Dict, List

__all__ = [
    "StudyKeys",
    "ExportKeys",
    "DEFAULT_STUDY_KEYS",
    "DEFAULT_EXPORT_KEYS",
    "KEY_ALIASES",
    "LINKAGE_METHODS",
    "DEFAULT_LINKAGE",
    "DEFAULT_N_COMPONENTS",
    "DEFAULT_N_ITERATIONS",
    "DEFAULT_RANDOM_SEED",
    "DEFAULT_ITEM_LIMIT",
    "SIMILARITY_DECIMALS",
]


# ---------------------------------------------------------------------------
# Study JSON key schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StudyKeys:
    """Keys of the exported study JSON.

    Attributes
    ----------
    cards : str
        List of ``{id, label, description?}`` objects (the item catalog).
    sessions : str
        List of completed sorting sessions.
    groups : str
        Top-level group forest of a session.
    item_ids : str
        Items placed directly in a group.
    children : str
        Nested sub-groups of a group.
    """

    id: str = "id"
    name: str = "name"
    created_at: str = "createdAt"
    cards: str = "cards"
    label: str = "label"
    description: str = "description"
    sessions: str = "sessions"
    started_at: str = "startedAt"
    duration_sec: str = "durationSec"
    demographics: str = "demographics"
    groups: str = "groups"
    item_ids: str = "cardIds"
    children: str = "children"


# ---------------------------------------------------------------------------
# Export column schema
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExportKeys:
    """Column names used by the CSV exporters.

    Attributes
    ----------
    label : str
        First column holding the item label of each row.
    component_prefix : str
        Prefix of embedding coordinate columns (``PC1``, ``PC2``, ...).
    """

    label: str = "card"
    component_prefix: str = "PC"


DEFAULT_STUDY_KEYS = StudyKeys()
DEFAULT_EXPORT_KEYS = ExportKeys()

# snake_case spellings accepted alongside the camelCase export keys
KEY_ALIASES: Dict[str, List[str]] = {
    "cardIds": ["cardIds", "card_ids", "item_ids", "items"],
    "startedAt": ["startedAt", "started_at"],
    "durationSec": ["durationSec", "duration_sec"],
    "createdAt": ["createdAt", "created_at"],
}

# ---------------------------------------------------------------------------
# Numeric defaults
# ---------------------------------------------------------------------------

LINKAGE_METHODS = ("single", "complete", "average")
DEFAULT_LINKAGE: str = "average"

# Scatter plots are 2-D
DEFAULT_N_COMPONENTS: int = 2

# Fixed power-method budget; enough for the tens of items a card sort has
DEFAULT_N_ITERATIONS: int = 200

DEFAULT_RANDOM_SEED: int = 42

# Analysis view shows the first 24 catalog items unless told otherwise
DEFAULT_ITEM_LIMIT: int = 24

SIMILARITY_DECIMALS: int = 4
