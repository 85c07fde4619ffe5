"""
Co-occurrence similarity between sorted items.

This module turns completed card-sorting sessions into a pairwise similarity
matrix over a selected, ordered subset of the item catalog:

- C (co-occurrence): how often two items were placed directly in the same
  group, counted once per qualifying group at every nesting level
- P (co-presence): how often two items were both sorted in the same session,
  counted once per session
- S = C / P off the diagonal (0 where P is 0); S[i, i] is 1 when item i was
  sorted in at least one session and 0 otherwise

Item ids that are not in the catalog or not selected are ignored.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from cardsort_analysis.data_validation import validate_unique_ids
from cardsort_analysis.records import Item, Session

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SimilarityMatrix:
    """Similarity of a fixed ordered list of items.

    Arrays are read-only; build a new matrix instead of editing one.

    Attributes
    ----------
    item_ids : Tuple[str, ...]
        Row/column order of all matrices
    similarity : np.ndarray
        Float matrix S of shape (n, n), values in [0, 1]
    cooccurrence : np.ndarray
        Integer matrix C of same-group counts
    copresence : np.ndarray
        Integer matrix P of same-session counts
    n_sessions : int
        Number of sessions the counts were taken from
    """

    item_ids: Tuple[str, ...]
    similarity: np.ndarray
    cooccurrence: np.ndarray
    copresence: np.ndarray
    n_sessions: int = 0

    @property
    def n_items(self) -> int:
        """Return number of items in the matrix."""
        return len(self.item_ids)

    def index_of(self, item_id: str) -> int:
        """Return the row index of ``item_id``."""
        try:
            return self.item_ids.index(item_id)
        except ValueError:
            raise KeyError(f"Item '{item_id}' is not part of this matrix") from None

    def value(self, item_a: str, item_b: str) -> float:
        """Return the similarity between two items by id."""
        return float(self.similarity[self.index_of(item_a), self.index_of(item_b)])

    def distances(self) -> np.ndarray:
        """Return the item distance matrix ``1 - S``."""
        return 1.0 - self.similarity


def _restricted_indices(item_ids: Iterable[str], index: Dict[str, int]) -> List[int]:
    """Map ids to matrix indices, dropping unknown ids and repeats."""
    seen = {}
    for item_id in item_ids:
        idx = index.get(item_id)
        if idx is not None:
            seen.setdefault(idx, None)
    return list(seen)


class SimilarityBuilder:
    """Accumulate co-occurrence evidence from sessions into a similarity matrix.

    Parameters
    ----------
    catalog : Sequence[Item]
        Full item catalog; session ids outside it are ignored
    item_ids : Sequence[str]
        Ordered subset of catalog ids to analyze

    Examples
    --------
    >>> builder = SimilarityBuilder(study.cards, ["card-1", "card-2", "card-3"])
    >>> builder.add_sessions(study.sessions)
    >>> matrix = builder.build()
    >>> matrix.value("card-1", "card-2")
    0.5
    """

    def __init__(self, catalog: Sequence[Item], item_ids: Sequence[str]):
        """Initialize empty counts for the selected items."""
        validate_unique_ids(item_ids)

        catalog_ids = {item.id for item in catalog}
        unknown = [item_id for item_id in item_ids if item_id not in catalog_ids]
        if unknown:
            LOGGER.warning(
                f"{len(unknown)} selected ids are not in the catalog and will stay empty: "
                f"{unknown[:5]}"
            )

        self.item_ids = tuple(item_ids)
        # Only catalog ids can collect evidence
        self._index = {
            item_id: i for i, item_id in enumerate(self.item_ids) if item_id in catalog_ids
        }
        n = len(self.item_ids)
        self._cooccurrence = np.zeros((n, n), dtype=np.int64)
        self._copresence = np.zeros((n, n), dtype=np.int64)
        self._n_sessions = 0

    def add_session(self, session: Session) -> None:
        """Add the co-occurrence and co-presence counts of one session."""
        n_ignored = 0
        present = {}

        for node in session.iter_nodes():
            local = _restricted_indices(node.item_ids, self._index)
            n_ignored += len(node.item_ids) - len(local)

            for idx in local:
                present.setdefault(idx, None)

            # Each group is its own clustering context; items of sub-groups
            # do not count as local to the parent
            if len(local) >= 2:
                self._cooccurrence[np.ix_(local, local)] += 1

        if present:
            present_idx = list(present)
            self._copresence[np.ix_(present_idx, present_idx)] += 1

        if n_ignored:
            LOGGER.debug(
                f"Session {session.id}: ignored {n_ignored} placements "
                f"outside the selection or catalog"
            )
        self._n_sessions += 1

    def add_sessions(self, sessions: Iterable[Session], show_progress: bool = False) -> None:
        """Add several sessions, optionally with a progress bar."""
        iterator = tqdm(sessions, desc="Counting sessions") if show_progress else sessions
        for session in iterator:
            self.add_session(session)

    def build(self) -> SimilarityMatrix:
        """Compute the similarity matrix from the counts collected so far.

        Returns
        -------
        SimilarityMatrix
            Fresh read-only matrix; the builder may keep accumulating
        """
        cooccurrence = self._cooccurrence.copy()
        copresence = self._copresence.copy()

        similarity = np.zeros(cooccurrence.shape, dtype=np.float64)
        np.divide(
            cooccurrence,
            copresence,
            out=similarity,
            where=copresence > 0,
        )
        np.fill_diagonal(similarity, (np.diag(copresence) > 0).astype(np.float64))

        absent = [self.item_ids[i] for i in np.flatnonzero(np.diag(copresence) == 0)]
        if absent and self._n_sessions:
            LOGGER.warning(f"{len(absent)} selected items never appear in any session: {absent[:5]}")

        for array in (similarity, cooccurrence, copresence):
            array.setflags(write=False)

        LOGGER.info(
            f"Built {len(self.item_ids)}x{len(self.item_ids)} similarity matrix "
            f"from {self._n_sessions} sessions"
        )
        return SimilarityMatrix(
            item_ids=self.item_ids,
            similarity=similarity,
            cooccurrence=cooccurrence,
            copresence=copresence,
            n_sessions=self._n_sessions,
        )


def build_similarity_matrix(
    catalog: Sequence[Item],
    sessions: Iterable[Session],
    item_ids: Optional[Sequence[str]] = None,
    show_progress: bool = False,
) -> SimilarityMatrix:
    """Build the similarity matrix of selected items from completed sessions.

    Parameters
    ----------
    catalog : Sequence[Item]
        Full item catalog
    sessions : Iterable[Session]
        Completed sessions
    item_ids : Sequence[str], optional
        Ordered subset of catalog ids; defaults to the whole catalog
    show_progress : bool
        Whether to show a progress bar over sessions

    Returns
    -------
    SimilarityMatrix
        Matrix over exactly ``item_ids``, in the given order

    Raises
    ------
    ValueError
        If ``item_ids`` contains duplicates

    Examples
    --------
    >>> matrix = build_similarity_matrix(study.cards, study.sessions)
    >>> matrix.similarity.shape
    (24, 24)
    """
    if item_ids is None:
        item_ids = [item.id for item in catalog]

    builder = SimilarityBuilder(catalog, item_ids)
    builder.add_sessions(sessions, show_progress=show_progress)
    return builder.build()
