# Path: vibefilter/embedders/clip_embedder.py
# Purpose: Provide a lightweight CLIP-style embedder implementation.
# Layer: vibefilter/embedders.
# Details: Uses deterministic numpy-based projections as a placeholder for loading real CLIP weights.

from __future__ import annotations

import hashlib
from typing import Optional, Sequence

import numpy as np

from .base import CanonicalImage, EmbeddingModel

_THUMBNAIL_SIDE = 16


class ClipEmbedder(EmbeddingModel):
    """Stub implementation that mimics CLIP behavior with lightweight operations.

    Text vectors come from hashing, image vectors from a fixed random projection of a
    downsampled thumbnail. Both are stable across processes, which keeps stored vectors
    comparable between runs.
    """

    def __init__(self, model_name: str = "clip-ViT-L/14", dim: int = 768, seed: int = 14) -> None:
        self.model_name = model_name
        self.dim = dim
        self.name = "clip"
        self._seed = seed
        self._projection: Optional[np.ndarray] = None

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """Generate deterministic text embeddings based on hashing."""

        if len(texts) == 0:
            return np.zeros((0, self.dim), dtype=np.float32)
        return np.vstack([self._embed_single_text(text) for text in texts])

    def _embed_single_text(self, text: str) -> np.ndarray:
        blocks = []
        counter = 0
        needed = self.dim
        while needed > 0:
            digest = hashlib.sha256(f"{counter}:{text}".encode("utf-8")).digest()
            blocks.append(np.frombuffer(digest, dtype=np.uint8))
            needed -= len(digest)
            counter += 1
        raw = np.concatenate(blocks)[: self.dim].astype(np.float32)
        return self._normalize(raw - 127.5)

    def _embed_canonical(self, canonical: CanonicalImage) -> np.ndarray:
        """Project a downsampled thumbnail through a fixed random matrix."""

        thumbnail = canonical.image.resize((_THUMBNAIL_SIDE, _THUMBNAIL_SIDE))
        pixels = np.asarray(thumbnail, dtype=np.float32).flatten() / 255.0
        centered = pixels - 0.5
        return self._normalize(self._get_projection(centered.size) @ centered)

    def _get_projection(self, features: int) -> np.ndarray:
        if self._projection is None or self._projection.shape[1] != features:
            rng = np.random.default_rng(self._seed)
            self._projection = rng.standard_normal((self.dim, features)).astype(np.float32)
        return self._projection
