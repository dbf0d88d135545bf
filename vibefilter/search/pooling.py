# Path: vibefilter/search/pooling.py
# Purpose: Collapse the per-expansion similarity scores of one image into a single score.
# Layer: vibefilter/search.
# Details: Strategies are pure functions of the score list and selectable by id from settings.

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Dict, Sequence

import numpy as np

DEFAULT_TEMPERATURE = 0.05


def pool_max(scores: Sequence[float]) -> float:
    """Hard maximum; 0.0 for an empty list."""

    if len(scores) == 0:
        return 0.0
    return float(np.max(np.asarray(scores, dtype=np.float64)))


def pool_softmax(scores: Sequence[float], temperature: float = DEFAULT_TEMPERATURE) -> float:
    """
    Temperature-smoothed log-sum-exp, normalized by the number of scores.

    Computes ``tau * log(mean(exp(s / tau)))``. Subtracting ``tau * log(n)`` from the plain
    log-sum-exp keeps the result between the smallest and the largest score, so a
    singleton returns its score for every temperature and the result tends to the max
    as ``tau`` shrinks. Evaluated around the maximum to stay finite for small ``tau``.
    """

    if len(scores) == 0:
        return 0.0
    if len(scores) == 1:
        return float(scores[0])
    if temperature <= 0:
        raise ValueError("temperature must be positive.")

    values = np.asarray(scores, dtype=np.float64)
    peak = float(values.max())
    pooled = peak + temperature * math.log(float(np.mean(np.exp((values - peak) / temperature))))
    return float(min(max(pooled, float(values.min())), peak))


class PoolingStrategy(ABC):
    """Interface for reducing a list of scores to one number."""

    id: str
    description: str

    @abstractmethod
    def pool(self, scores: Sequence[float]) -> float:
        """Return the pooled score (0.0 when ``scores`` is empty)."""

    def pool_matrix(self, scores: np.ndarray) -> np.ndarray:
        """Pool each row of an ``(images, expansions)`` score matrix."""

        if scores.ndim != 2:
            raise ValueError("pool_matrix expects a 2-D array.")
        return np.asarray([self.pool(row) for row in scores], dtype=np.float32)


class MaxPooling(PoolingStrategy):
    """Did the image match any paraphrase at all."""

    id = "max"
    description = "Keep the best score among the expansions."

    def pool(self, scores: Sequence[float]) -> float:
        return pool_max(scores)

    def pool_matrix(self, scores: np.ndarray) -> np.ndarray:
        if scores.ndim != 2:
            raise ValueError("pool_matrix expects a 2-D array.")
        if scores.shape[1] == 0:
            return np.zeros((scores.shape[0],), dtype=np.float32)
        return scores.max(axis=1).astype(np.float32)


class SoftmaxPooling(PoolingStrategy):
    """Smooth maximum that slightly rewards several supporting paraphrases."""

    id = "softmax"
    description = "Temperature-smoothed log-sum-exp over the expansions."

    def __init__(self, temperature: float = DEFAULT_TEMPERATURE) -> None:
        if temperature <= 0:
            raise ValueError("temperature must be positive.")
        self.temperature = temperature

    def pool(self, scores: Sequence[float]) -> float:
        return pool_softmax(scores, self.temperature)


def get_pooling(strategy_id: str, temperature: float = DEFAULT_TEMPERATURE) -> PoolingStrategy:
    """Resolve a pooling strategy by id."""

    strategies: Dict[str, PoolingStrategy] = {
        MaxPooling.id: MaxPooling(),
        SoftmaxPooling.id: SoftmaxPooling(temperature),
    }
    strategy = strategies.get(strategy_id)
    if strategy is None:
        raise ValueError(f"Unknown pooling strategy: {strategy_id}")
    return strategy
