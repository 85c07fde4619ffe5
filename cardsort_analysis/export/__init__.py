"""CSV/DataFrame exports of similarity matrices, co-occurrence counts and coordinates.

Examples
--------
>>> from cardsort_analysis.export import save_similarity_csv
>>>
>>> save_similarity_csv(result.similarity, "out/similarity.csv",
...                     labels=study.labels, order=result.leaf_order)
"""

from .csv_export import (
    cooccurrence_to_dataframe,
    coordinates_to_dataframe,
    save_cooccurrence_csv,
    save_coordinates_csv,
    save_similarity_csv,
    similarity_to_dataframe,
)

__all__ = [
    "cooccurrence_to_dataframe",
    "coordinates_to_dataframe",
    "save_cooccurrence_csv",
    "save_coordinates_csv",
    "save_similarity_csv",
    "similarity_to_dataframe",
]
