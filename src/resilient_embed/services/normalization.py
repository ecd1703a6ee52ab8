"""L2 normalization of embedding vectors."""

from typing import List, Sequence

import numpy as np


def normalize_vector(vector: Sequence[float]) -> List[float]:
    """
    Scale *vector* to unit Euclidean length.

    An all-zero vector has no direction; it is divided by 1 and therefore
    returned unchanged instead of producing NaNs. Values are computed in
    float64 and returned as float32-representable Python floats.

    Args:
        vector: Raw embedding values.

    Returns:
        A new list with the same length and order as *vector*.
    """
    arr = np.asarray(vector, dtype=np.float64)
    if arr.size == 0:
        return []
    norm = float(np.linalg.norm(arr))
    if norm == 0.0 or not np.isfinite(norm):
        norm = 1.0
    return (arr / norm).astype(np.float32).tolist()
