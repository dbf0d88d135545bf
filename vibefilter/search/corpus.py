# Path: vibefilter/search/corpus.py
# Purpose: Hold the image embeddings of one scoring run in a single matrix.
# Layer: vibefilter/search.
# Details: Exhaustive numpy scoring; rows with a foreign dimension are rejected when added.

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from vibefilter.models.domain import ImageEmbedding
from vibefilter.vectors import cosine_many

logger = logging.getLogger(__name__)


class ImageCorpus:
    """In-memory image matrix used by hub detection and ranking.

    There is no approximate index; every query is scored against every row.
    """

    def __init__(self, dim: int) -> None:
        self.dim = dim
        self._ids: List[str] = []
        self._vectors: Optional[np.ndarray] = None

    @classmethod
    def from_embeddings(cls, embeddings: Iterable[ImageEmbedding], dim: int) -> "ImageCorpus":
        """Build a corpus, skipping (and logging) embeddings whose dimension is not ``dim``."""

        corpus = cls(dim)
        ids: List[str] = []
        rows: List[np.ndarray] = []
        for embedding in embeddings:
            if embedding.dim != dim:
                logger.warning(
                    "Skipping image %s: embedding dimension %d does not match %d", embedding.image_id, embedding.dim, dim
                )
                continue
            ids.append(embedding.image_id)
            rows.append(embedding.vector)
        if rows:
            corpus.add(ids, np.vstack(rows))
        return corpus

    def add(self, ids: Sequence[str], vectors: np.ndarray) -> None:
        """Append vectors for ``ids``."""

        if vectors.ndim != 2 or vectors.shape[1] != self.dim:
            raise ValueError(f"Vector dimensionality {vectors.shape[-1]} does not match corpus dimension {self.dim}.")
        if len(ids) != vectors.shape[0]:
            raise ValueError("ids length must match the number of vectors.")

        if self._vectors is None:
            self._vectors = vectors.astype(np.float32)
            self._ids = list(ids)
        else:
            self._vectors = np.vstack([self._vectors, vectors.astype(np.float32)])
            self._ids.extend(ids)

    def __len__(self) -> int:
        return len(self._ids)

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    @property
    def vectors(self) -> np.ndarray:
        if self._vectors is None:
            return np.zeros((0, self.dim), dtype=np.float32)
        return self._vectors

    def scores(self, query: np.ndarray) -> np.ndarray:
        """Cosine of every image against ``query``."""

        if query.shape[0] != self.dim:
            raise ValueError(f"Query dimensionality {query.shape[0]} does not match corpus dimension {self.dim}.")
        return cosine_many(self.vectors, query)

    def top_n(self, query: np.ndarray, n: int) -> List[Tuple[str, float]]:
        """Best ``n`` images for ``query``; equal scores keep insertion order."""

        if len(self._ids) == 0 or n <= 0:
            return []
        scores = self.scores(query)
        order = np.argsort(-scores, kind="stable")[:n]
        return [(self._ids[idx], float(scores[idx])) for idx in order]
