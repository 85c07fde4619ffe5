"""
In-memory records for card-sorting studies.

This module defines the read-only records the analysis consumes:

- Item: a card with an identifier and a display label
- GroupNode: one group of a participant's sorting hierarchy
- Session: one participant's complete sorting result (a forest of groups)
- Study: an item catalog plus its completed sessions

Records are frozen dataclasses. Sessions are walked with plain recursion and
never edited here; moving cards between groups belongs to the data entry
layer.

Parsers accept the exported study JSON shape (camelCase keys) as well as
snake_case spellings, see :data:`~cardsort_analysis.DEFAULT_CONSTS.KEY_ALIASES`.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from cardsort_analysis.DEFAULT_CONSTS import DEFAULT_STUDY_KEYS, KEY_ALIASES

LOGGER = logging.getLogger(__name__)


def _get_aliased(data: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Return the first present spelling of ``key`` in ``data``."""
    for alias in KEY_ALIASES.get(key, [key]):
        if alias in data:
            return data[alias]
    return default


@dataclass(frozen=True)
class Item:
    """A card being sorted.

    Parameters
    ----------
    id : str
        Opaque identifier referenced by sessions
    label : str
        Display label
    description : str, optional
        Free-text description shown to participants
    """

    id: str
    label: str
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        """Build an item from a ``{id, label, description?}`` mapping."""
        keys = DEFAULT_STUDY_KEYS
        if keys.id not in data:
            raise ValueError(f"Card entry is missing '{keys.id}': {data}")
        item_id = str(data[keys.id])
        return cls(
            id=item_id,
            label=str(data.get(keys.label) or item_id),
            description=data.get(keys.description),
        )


@dataclass(frozen=True)
class GroupNode:
    """A node of a session's sorting hierarchy.

    Parameters
    ----------
    item_ids : Tuple[str, ...]
        Items placed directly in this group (its local items)
    children : Tuple[GroupNode, ...]
        Ordered sub-groups
    id : str, optional
        Group identifier, display only
    name : str, optional
        Group name given by the participant, display only
    """

    item_ids: Tuple[str, ...] = ()
    children: Tuple["GroupNode", ...] = ()
    id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        # Accept lists from callers while keeping the record hashable
        object.__setattr__(self, "item_ids", tuple(self.item_ids))
        object.__setattr__(self, "children", tuple(self.children))

    def iter_nodes(self) -> Iterator["GroupNode"]:
        """Yield this node and all of its descendants, depth-first."""
        yield self
        for child in self.children:
            yield from child.iter_nodes()

    def all_item_ids(self) -> List[str]:
        """Return every item id placed anywhere in this subtree."""
        return [item_id for node in self.iter_nodes() for item_id in node.item_ids]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GroupNode":
        """Build a group (recursively) from the exported JSON shape."""
        keys = DEFAULT_STUDY_KEYS
        raw_ids = _get_aliased(data, keys.item_ids, []) or []
        raw_children = data.get(keys.children) or []
        return cls(
            item_ids=tuple(str(item_id) for item_id in raw_ids),
            children=tuple(cls.from_dict(child) for child in raw_children),
            id=data.get(keys.id),
            name=data.get(keys.name),
        )


@dataclass(frozen=True)
class Session:
    """One participant's complete sorting result.

    Only ``groups`` is used by the analysis; the remaining fields are carried
    for callers that display or filter sessions.

    Parameters
    ----------
    id : str
        Session identifier
    groups : Tuple[GroupNode, ...]
        Top-level groups (a forest)
    started_at : float, optional
        Start timestamp in milliseconds since epoch
    duration_sec : float, optional
        Time the participant spent sorting
    demographics : Dict[str, Any]
        Participant fields (profile, gender, age); never read by the analysis
    """

    id: str
    groups: Tuple[GroupNode, ...] = ()
    started_at: Optional[float] = None
    duration_sec: Optional[float] = None
    demographics: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "groups", tuple(self.groups))

    def iter_nodes(self) -> Iterator[GroupNode]:
        """Yield every group of the forest, depth-first."""
        for group in self.groups:
            yield from group.iter_nodes()

    def present_item_ids(self) -> List[str]:
        """Return the distinct item ids placed anywhere in the session.

        Order follows the first appearance in a depth-first walk.
        """
        seen = {}
        for node in self.iter_nodes():
            for item_id in node.item_ids:
                seen.setdefault(item_id, None)
        return list(seen)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        """Build a session from the exported JSON shape."""
        keys = DEFAULT_STUDY_KEYS
        if keys.id not in data:
            raise ValueError(f"Session entry is missing '{keys.id}'")
        return cls(
            id=str(data[keys.id]),
            groups=tuple(GroupNode.from_dict(g) for g in data.get(keys.groups) or []),
            started_at=_get_aliased(data, keys.started_at),
            duration_sec=_get_aliased(data, keys.duration_sec),
            demographics=dict(data.get(keys.demographics) or {}),
        )


@dataclass(frozen=True)
class Study:
    """An item catalog plus the sessions collected for it.

    Parameters
    ----------
    id : str
        Study identifier
    name : str
        Study name
    cards : Tuple[Item, ...]
        Ordered item catalog
    sessions : Tuple[Session, ...]
        Completed sessions
    created_at : float, optional
        Creation timestamp in milliseconds since epoch

    Examples
    --------
    >>> study = load_study("my_study.json")
    >>> ids = select_item_ids(study.cards, limit=24)
    """

    id: str
    name: str
    cards: Tuple[Item, ...] = ()
    sessions: Tuple[Session, ...] = ()
    created_at: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "cards", tuple(self.cards))
        object.__setattr__(self, "sessions", tuple(self.sessions))

    @property
    def labels(self) -> Dict[str, str]:
        """Map item id to display label."""
        return {card.id: card.label for card in self.cards}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Study":
        """Build a study from an exported study JSON object.

        Missing card and session lists default to empty, and a study without a
        name is called ``"Imported study <YYYY-MM-DD>"``.
        """
        keys = DEFAULT_STUDY_KEYS
        name = data.get(keys.name) or f"Imported study {date.today().isoformat()}"
        return cls(
            id=str(data.get(keys.id) or name),
            name=name,
            cards=tuple(Item.from_dict(c) for c in data.get(keys.cards) or []),
            sessions=tuple(Session.from_dict(s) for s in data.get(keys.sessions) or []),
            created_at=_get_aliased(data, keys.created_at),
        )


def load_study(path: Union[str, Path]) -> Study:
    """Load a study from an exported study JSON file.

    Parameters
    ----------
    path : str or Path
        Path to the JSON file

    Returns
    -------
    Study
        Parsed study

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the file does not hold a JSON object
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Study JSON not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Study JSON must contain an object, got {type(data).__name__}")

    study = Study.from_dict(data)
    LOGGER.info(
        f"Loaded study '{study.name}' from {path}: "
        f"{len(study.cards)} cards, {len(study.sessions)} sessions"
    )
    return study


def select_item_ids(catalog: Sequence[Item], limit: Optional[int] = None) -> List[str]:
    """Select the first ``limit`` item ids of the catalog, in catalog order.

    Parameters
    ----------
    catalog : Sequence[Item]
        Ordered item catalog
    limit : int, optional
        Maximum number of items; None selects the whole catalog

    Returns
    -------
    List[str]
        Selected item ids
    """
    if limit is not None and limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    selected = catalog if limit is None else catalog[:limit]
    return [item.id for item in selected]
