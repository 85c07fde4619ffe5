"""
Tabular exports of analysis outputs.

This module turns analysis outputs into pandas DataFrames and CSV files:

- Similarity matrix (values rounded to 4 decimals on export)
- Co-occurrence counts
- Embedding coordinates (columns PC1..PCk)

Rows and columns are labelled with item labels when a label mapping is
given, falling back to the item id. An optional ``order`` (for example the
dendrogram leaf order) reorders rows and columns.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from cardsort_analysis.DEFAULT_CONSTS import (
    DEFAULT_EXPORT_KEYS,
    SIMILARITY_DECIMALS,
    ExportKeys,
)
from cardsort_analysis.embeddings import Embedding
from cardsort_analysis.similarity import SimilarityMatrix

LOGGER = logging.getLogger(__name__)


def _resolve_order(item_ids: Sequence[str], order: Optional[Sequence[str]]) -> List[int]:
    """Return row indices for ``order`` (identity when None)."""
    if order is None:
        return list(range(len(item_ids)))
    if sorted(order) != sorted(item_ids):
        raise ValueError("order must be a permutation of the matrix item ids")
    position = {item_id: i for i, item_id in enumerate(item_ids)}
    return [position[item_id] for item_id in order]


def _labels_for(item_ids: Sequence[str], labels: Optional[Dict[str, str]]) -> List[str]:
    labels = labels or {}
    return [labels.get(item_id) or item_id for item_id in item_ids]


def _square_frame(
    values: np.ndarray,
    item_ids: Sequence[str],
    labels: Optional[Dict[str, str]],
    order: Optional[Sequence[str]],
    export_keys: ExportKeys,
) -> pd.DataFrame:
    rows = _resolve_order(item_ids, order)
    ordered_ids = [item_ids[i] for i in rows]
    names = _labels_for(ordered_ids, labels)
    df = pd.DataFrame(values[np.ix_(rows, rows)], columns=names)
    df.insert(0, export_keys.label, names, allow_duplicates=True)
    return df


def similarity_to_dataframe(
    matrix: SimilarityMatrix,
    labels: Optional[Dict[str, str]] = None,
    order: Optional[Sequence[str]] = None,
    export_keys: ExportKeys = DEFAULT_EXPORT_KEYS,
) -> pd.DataFrame:
    """Return the similarity matrix as a labelled DataFrame.

    Parameters
    ----------
    matrix : SimilarityMatrix
        Matrix to export
    labels : Dict[str, str], optional
        Item id to display label
    order : Sequence[str], optional
        Permutation of the matrix ids to use for rows and columns
    export_keys : ExportKeys
        Column naming

    Returns
    -------
    pd.DataFrame
        First column holds the row labels, one column per item follows
    """
    return _square_frame(matrix.similarity, list(matrix.item_ids), labels, order, export_keys)


def cooccurrence_to_dataframe(
    matrix: SimilarityMatrix,
    labels: Optional[Dict[str, str]] = None,
    order: Optional[Sequence[str]] = None,
    export_keys: ExportKeys = DEFAULT_EXPORT_KEYS,
) -> pd.DataFrame:
    """Return the co-occurrence counts as a labelled DataFrame."""
    return _square_frame(matrix.cooccurrence, list(matrix.item_ids), labels, order, export_keys)


def coordinates_to_dataframe(
    embedding: Embedding,
    labels: Optional[Dict[str, str]] = None,
    export_keys: ExportKeys = DEFAULT_EXPORT_KEYS,
) -> pd.DataFrame:
    """Return embedding coordinates, one row per item."""
    columns = [
        f"{export_keys.component_prefix}{c + 1}" for c in range(embedding.n_components)
    ]
    df = pd.DataFrame(np.asarray(embedding.coordinates), columns=columns)
    df.insert(0, export_keys.label, _labels_for(embedding.item_ids, labels), allow_duplicates=True)
    return df


def _write_csv(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8")
    LOGGER.info(f"Saved {len(df)} rows to {path}")
    return path


def save_similarity_csv(
    matrix: SimilarityMatrix,
    path: Union[str, Path],
    labels: Optional[Dict[str, str]] = None,
    order: Optional[Sequence[str]] = None,
    export_keys: ExportKeys = DEFAULT_EXPORT_KEYS,
) -> Path:
    """Write the similarity matrix to CSV, rounded to 4 decimals."""
    rounded = np.round(matrix.similarity, SIMILARITY_DECIMALS)
    df = _square_frame(rounded, list(matrix.item_ids), labels, order, export_keys)
    return _write_csv(df, path)


def save_cooccurrence_csv(
    matrix: SimilarityMatrix,
    path: Union[str, Path],
    labels: Optional[Dict[str, str]] = None,
    order: Optional[Sequence[str]] = None,
    export_keys: ExportKeys = DEFAULT_EXPORT_KEYS,
) -> Path:
    """Write the co-occurrence counts to CSV."""
    return _write_csv(cooccurrence_to_dataframe(matrix, labels, order, export_keys), path)


def save_coordinates_csv(
    embedding: Embedding,
    path: Union[str, Path],
    labels: Optional[Dict[str, str]] = None,
    export_keys: ExportKeys = DEFAULT_EXPORT_KEYS,
) -> Path:
    """Write embedding coordinates to CSV."""
    return _write_csv(coordinates_to_dataframe(embedding, labels, export_keys), path)
