"""
Configuration dataclass for card-sort analysis runs.

This module provides the analysis settings with JSON serialization support so
a run can be reproduced later.
"""

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, Union

from cardsort_analysis.DEFAULT_CONSTS import (
    DEFAULT_ITEM_LIMIT,
    DEFAULT_LINKAGE,
    DEFAULT_N_COMPONENTS,
    DEFAULT_N_ITERATIONS,
    DEFAULT_RANDOM_SEED,
    LINKAGE_METHODS,
)
from cardsort_analysis.data_validation import validate_positive_int


@dataclass
class AnalysisConfig:
    """Settings of one analysis run.

    Parameters
    ----------
    linkage : str
        Dendrogram linkage: "single", "complete" or "average"
    n_components : int
        Embedding dimensionality
    n_iterations : int
        Power-method rounds per embedding component
    random_seed : int, optional
        Seed of the embedding; None gives non-reproducible coordinates
    item_limit : int, optional
        Number of leading catalog items analyzed when no explicit selection
        is given; None analyzes the whole catalog
    use_cache : bool
        Whether :class:`~cardsort_analysis.analysis.StudyAnalyzer` memoizes
        results

    Examples
    --------
    >>> config = AnalysisConfig(linkage="complete", item_limit=30)
    >>> config.save("output/analysis_config.json")
    >>> loaded = AnalysisConfig.load("output/analysis_config.json")
    """

    linkage: str = DEFAULT_LINKAGE
    n_components: int = DEFAULT_N_COMPONENTS
    n_iterations: int = DEFAULT_N_ITERATIONS
    random_seed: Optional[int] = DEFAULT_RANDOM_SEED
    item_limit: Optional[int] = DEFAULT_ITEM_LIMIT
    use_cache: bool = True

    def __post_init__(self):
        """Validate configuration values."""
        if self.linkage not in LINKAGE_METHODS:
            raise ValueError(
                f"linkage must be one of {LINKAGE_METHODS}, got {self.linkage!r}"
            )

        validate_positive_int(self.n_components, "n_components")
        validate_positive_int(self.n_iterations, "n_iterations")
        if self.item_limit is not None:
            validate_positive_int(self.item_limit, "item_limit")

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a JSON file.

        Parameters
        ----------
        path : str or Path
            Output path; parent directories are created
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AnalysisConfig":
        """Load configuration from a JSON file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        return cls(**data)
