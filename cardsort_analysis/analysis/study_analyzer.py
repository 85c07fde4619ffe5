"""
End-to-end analysis of a card-sorting study.

catalog + sessions -> similarity matrix -> {dendrogram, embedding}

:class:`StudyAnalyzer` runs the three steps with one :class:`AnalysisConfig`
and memoizes results by a hash of everything the outputs depend on (selected
items, session groupings, linkage and embedding settings). Results are
immutable, so cached entries can be shared between callers.
"""

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from cardsort_analysis.clustering import MergeNode, build_dendrogram, leaf_order
from cardsort_analysis.embeddings import Embedding, SpectralEmbedder
from cardsort_analysis.records import GroupNode, Item, Session, Study, select_item_ids
from cardsort_analysis.similarity import SimilarityMatrix, build_similarity_matrix

from .analysis_config import AnalysisConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CACHE_ENTRIES = 32


@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Outputs of one analysis run.

    Attributes
    ----------
    item_ids : Tuple[str, ...]
        Analyzed items, in matrix order
    similarity : SimilarityMatrix
        Co-occurrence similarity with its count matrices
    dendrogram : MergeNode
        Root of the merge tree
    embedding : Embedding
        Item coordinates
    leaf_order : Tuple[str, ...]
        Dendrogram leaf order, for reordering heat-maps
    cache_key : str
        Key the result is memoized under
    """

    item_ids: Tuple[str, ...]
    similarity: SimilarityMatrix
    dendrogram: MergeNode
    embedding: Embedding
    leaf_order: Tuple[str, ...]
    cache_key: str


def _group_signature(group: GroupNode) -> List[Any]:
    return [list(group.item_ids), [_group_signature(child) for child in group.children]]


def compute_analysis_key(
    item_ids: Sequence[str],
    sessions: Sequence[Session],
    config: AnalysisConfig,
    catalog: Optional[Sequence[Item]] = None,
) -> str:
    """Compute the memoization key of an analysis run.

    Only inputs that change the outputs take part: the ordered selection, the
    selected ids found in the catalog, the grouping forest of every session,
    and the clustering/embedding settings. Group names and session metadata
    are left out.

    Parameters
    ----------
    item_ids : Sequence[str]
        Ordered selection
    sessions : Sequence[Session]
        Completed sessions
    config : AnalysisConfig
        Analysis settings
    catalog : Sequence[Item], optional
        Item catalog; None treats every selected id as known
    """
    if catalog is None:
        known_ids = list(item_ids)
    else:
        catalog_ids = {item.id for item in catalog}
        known_ids = [item_id for item_id in item_ids if item_id in catalog_ids]

    payload = {
        "item_ids": list(item_ids),
        "known_ids": known_ids,
        "sessions": [
            [session.id, [_group_signature(group) for group in session.groups]]
            for session in sessions
        ],
        "linkage": config.linkage,
        "n_components": config.n_components,
        "n_iterations": config.n_iterations,
        "random_seed": config.random_seed,
    }
    payload_str = json.dumps(payload, sort_keys=True)
    return hashlib.md5(payload_str.encode()).hexdigest()[:16]


class StudyAnalyzer:
    """Run similarity, clustering and embedding for a study.

    Parameters
    ----------
    config : AnalysisConfig, optional
        Analysis settings; defaults to :class:`AnalysisConfig()`
    max_cache_entries : int
        Number of results kept; least recently used ones are dropped first

    Examples
    --------
    >>> analyzer = StudyAnalyzer(AnalysisConfig(linkage="average"))
    >>> result = analyzer.analyze_study(study)
    >>> result.dendrogram.leaf_ids()
    >>> result.embedding.as_dict()
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        max_cache_entries: int = DEFAULT_MAX_CACHE_ENTRIES,
    ):
        """Initialize analyzer with an empty cache."""
        if max_cache_entries <= 0:
            raise ValueError(f"max_cache_entries must be positive, got {max_cache_entries}")
        self.config = config or AnalysisConfig()
        self.max_cache_entries = max_cache_entries
        self._cache: "OrderedDict[str, AnalysisResult]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def cache_size(self) -> int:
        """Return number of memoized results."""
        with self._lock:
            return len(self._cache)

    def clear_cache(self) -> None:
        """Drop all memoized results."""
        with self._lock:
            self._cache.clear()

    def analyze(
        self,
        catalog: Sequence[Item],
        sessions: Sequence[Session],
        item_ids: Optional[Sequence[str]] = None,
        show_progress: bool = False,
    ) -> AnalysisResult:
        """Analyze sessions over a selection of the catalog.

        Parameters
        ----------
        catalog : Sequence[Item]
            Full item catalog
        sessions : Sequence[Session]
            Completed sessions
        item_ids : Sequence[str], optional
            Ordered selection; defaults to the first ``config.item_limit``
            catalog items
        show_progress : bool
            Whether to show a progress bar while counting sessions

        Returns
        -------
        AnalysisResult
            Similarity matrix, dendrogram and embedding

        Raises
        ------
        ValueError
            If the selection is empty or holds duplicate ids
        """
        if item_ids is None:
            item_ids = select_item_ids(catalog, self.config.item_limit)
        item_ids = tuple(item_ids)

        cache_key = compute_analysis_key(item_ids, sessions, self.config, catalog)
        if self.config.use_cache:
            with self._lock:
                cached = self._cache.get(cache_key)
                if cached is not None:
                    self._cache.move_to_end(cache_key)
                    LOGGER.debug(f"Cache hit for analysis {cache_key}")
                    return cached

        LOGGER.info(
            f"Analyzing {len(item_ids)} items over {len(sessions)} sessions "
            f"(linkage={self.config.linkage}, n_components={self.config.n_components})"
        )
        similarity = build_similarity_matrix(
            catalog, sessions, item_ids, show_progress=show_progress
        )
        dendrogram = build_dendrogram(similarity, linkage=self.config.linkage)
        embedding = SpectralEmbedder(
            n_components=self.config.n_components,
            n_iterations=self.config.n_iterations,
            random_seed=self.config.random_seed,
        ).fit_transform(similarity)

        result = AnalysisResult(
            item_ids=item_ids,
            similarity=similarity,
            dendrogram=dendrogram,
            embedding=embedding,
            leaf_order=tuple(leaf_order(dendrogram, item_ids)),
            cache_key=cache_key,
        )

        if self.config.use_cache:
            with self._lock:
                self._cache[cache_key] = result
                self._cache.move_to_end(cache_key)
                while len(self._cache) > self.max_cache_entries:
                    self._cache.popitem(last=False)

        return result

    def analyze_study(
        self,
        study: Study,
        item_ids: Optional[Sequence[str]] = None,
        show_progress: bool = False,
    ) -> AnalysisResult:
        """Analyze a :class:`~cardsort_analysis.records.Study`."""
        return self.analyze(
            study.cards, study.sessions, item_ids=item_ids, show_progress=show_progress
        )


def analyze_study(
    study: Study,
    config: Optional[AnalysisConfig] = None,
    item_ids: Optional[Sequence[str]] = None,
) -> AnalysisResult:
    """Run a one-off, uncached analysis of a study."""
    config = config or AnalysisConfig()
    return StudyAnalyzer(config).analyze_study(study, item_ids=item_ids)


def summarize_result(result: AnalysisResult) -> Dict[str, Any]:
    """Return a JSON-friendly summary of an analysis result.

    Contains the item order, the similarity rows, the leaf order, merge
    heights in merge order and the embedding coordinates.
    """
    internal = sorted(
        (node for node in result.dendrogram.iter_nodes() if not node.is_leaf),
        key=lambda node: node.order,
    )
    return {
        "item_ids": list(result.item_ids),
        "n_sessions": result.similarity.n_sessions,
        "similarity": result.similarity.similarity.tolist(),
        "leaf_order": list(result.leaf_order),
        "merge_heights": [node.height for node in internal],
        "coordinates": {k: list(v) for k, v in result.embedding.as_dict().items()},
        "eigenvalues": result.embedding.eigenvalues.tolist(),
    }
