# Path: vibefilter/vectors/ops.py
# Purpose: Provide the pure vector functions every scoring component builds on.
# Layer: vibefilter/vectors.
# Details: Vectors are unit-normalized before storage, so cosine similarity is a plain dot product.

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

UNIT_TOLERANCE = 1e-3
NORM_EPSILON = 1e-12


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the dot product of ``a`` and ``b`` over their common prefix.

    Both inputs are expected to be unit length already; no norm division happens here.
    """

    a_arr = np.asarray(a, dtype=np.float32)
    b_arr = np.asarray(b, dtype=np.float32)
    length = min(a_arr.shape[0], b_arr.shape[0])
    if length == 0:
        return 0.0
    return float(np.dot(a_arr[:length], b_arr[:length]))


def cosine_many(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """Score every row of ``matrix`` against ``vector`` (shared dimension required)."""

    if matrix.size == 0:
        return np.zeros((0,), dtype=np.float32)
    if matrix.shape[1] != vector.shape[0]:
        raise ValueError(f"Matrix dimension {matrix.shape[1]} does not match vector dimension {vector.shape[0]}.")
    return matrix.astype(np.float32) @ vector.astype(np.float32)


def mean(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Return the element-wise average of equally sized vectors."""

    if len(vectors) == 0:
        raise ValueError("mean() requires at least one vector.")
    lengths = {len(v) for v in vectors}
    if len(lengths) != 1:
        raise ValueError(f"mean() requires vectors of equal length, got lengths {sorted(lengths)}.")
    stacked = np.vstack([np.asarray(v, dtype=np.float32) for v in vectors])
    return stacked.mean(axis=0).astype(np.float32)


def l2_normalize(vector: Sequence[float], eps: float = NORM_EPSILON) -> np.ndarray:
    """Scale ``vector`` to unit length, guarding against zero vectors with ``eps``."""

    arr = np.asarray(vector, dtype=np.float32)
    norm = float(np.linalg.norm(arr))
    return (arr / max(norm, eps)).astype(np.float32)


def is_unit(vector: Sequence[float], tol: float = UNIT_TOLERANCE) -> bool:
    """Return True when the L2 norm of ``vector`` is within ``tol`` of one."""

    return abs(float(np.linalg.norm(np.asarray(vector, dtype=np.float32))) - 1.0) < tol


def ensure_unit(vector: Sequence[float], label: str = "vector") -> np.ndarray:
    """Return ``vector`` as unit length, renormalizing (and logging) when it drifted."""

    arr = np.asarray(vector, dtype=np.float32)
    if is_unit(arr):
        return arr
    logger.debug("%s renormalized (norm=%.4f)", label, float(np.linalg.norm(arr)))
    return l2_normalize(arr)
