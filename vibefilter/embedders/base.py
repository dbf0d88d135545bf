# Path: vibefilter/embedders/base.py
# Purpose: Define the EmbeddingModel interface for text batches and canonicalized images.
# Layer: vibefilter/embedders.
# Details: Implementations return unit-length float32 vectors of one fixed dimension per model version.

from __future__ import annotations

import hashlib
import io
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from PIL import Image

from vibefilter.errors import EmbeddingError
from vibefilter.vectors import ensure_unit


@dataclass(frozen=True)
class CanonicalImage:
    """Decoded image in its canonical form (RGB, no alpha) plus a digest of its pixels."""

    image: Image.Image
    png: bytes
    content_hash: str
    width: int
    height: int


def canonicalize_image(data: bytes) -> CanonicalImage:
    """Decode ``data`` to RGB without alpha and hash the resulting pixels.

    Two encodings of the same pixels produce the same ``content_hash``, which lets
    callers reuse an existing embedding instead of recomputing it.
    """

    try:
        with Image.open(io.BytesIO(data)) as opened:
            rgb = opened.convert("RGB")
    except OSError as exc:
        raise EmbeddingError(f"Could not decode image bytes: {exc}") from exc

    digest = hashlib.sha256()
    digest.update(f"{rgb.width}x{rgb.height}:".encode("ascii"))
    digest.update(rgb.tobytes())

    buffer = io.BytesIO()
    rgb.save(buffer, format="PNG")
    return CanonicalImage(
        image=rgb,
        png=buffer.getvalue(),
        content_hash=digest.hexdigest(),
        width=rgb.width,
        height=rgb.height,
    )


class EmbeddingModel(ABC):
    """Abstract base class for the vision-language model used by the engine."""

    name: str
    model_name: str
    dim: int

    @abstractmethod
    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """Return a ``(len(texts), dim)`` matrix of unit-length text embeddings."""

    def embed_text(self, text: str) -> np.ndarray:
        """Return a single text embedding."""

        return self.embed_texts([text])[0]

    def embed_image(self, data: bytes) -> Tuple[np.ndarray, str]:
        """Return the unit-length embedding of an encoded image and its content hash."""

        canonical = canonicalize_image(data)
        return self.embed_canonical(canonical), canonical.content_hash

    def embed_canonical(self, canonical: CanonicalImage) -> np.ndarray:
        """Embed an image that was canonicalized by the caller (e.g. to check its hash first)."""

        return ensure_unit(self._embed_canonical(canonical), label="image embedding")

    @abstractmethod
    def _embed_canonical(self, canonical: CanonicalImage) -> np.ndarray:
        """Embed an already canonicalized image."""

    @staticmethod
    def _normalize(vector: np.ndarray) -> np.ndarray:
        """Normalize embedding vectors to unit length to simplify similarity comparisons."""

        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.astype(np.float32)
        return (vector / norm).astype(np.float32)
