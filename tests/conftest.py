"""
Shared fixtures: a controllable embedder, an in-memory catalog, and a small vocabulary.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from vibefilter.concepts import ConceptGraph
from vibefilter.embedders import ClipEmbedder, EmbeddingModel
from vibefilter.embedders.base import CanonicalImage
from vibefilter.models import Concept
from vibefilter.storage import SQLiteStore
from vibefilter.vectors import l2_normalize


class FakeEmbedder(EmbeddingModel):
    """Returns fixed vectors for known texts and hashed vectors for everything else."""

    def __init__(self, dim: int = 4, vectors: Optional[Dict[str, Sequence[float]]] = None) -> None:
        self.name = "fake"
        self.model_name = "fake-model"
        self.dim = dim
        self.vectors = {text: l2_normalize(np.asarray(v, dtype=np.float32)) for text, v in (vectors or {}).items()}
        self.text_calls: List[List[str]] = []
        self._fallback = ClipEmbedder(model_name="fake-model", dim=dim)

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        self.text_calls.append(list(texts))
        if len(texts) == 0:
            return np.zeros((0, self.dim), dtype=np.float32)
        rows = [self.vectors[text] if text in self.vectors else self._fallback.embed_text(text) for text in texts]
        return np.vstack(rows).astype(np.float32)

    def _embed_canonical(self, canonical: CanonicalImage) -> np.ndarray:
        return self._fallback._embed_canonical(canonical)


@pytest.fixture
def fake_embedder():
    return FakeEmbedder(dim=4)


@pytest.fixture
def store():
    catalog = SQLiteStore(":memory:")
    yield catalog
    catalog.close()


@pytest.fixture
def concepts():
    return [
        Concept(id="3d", label="3D", synonyms=frozenset({"three dimensional"})),
        Concept(id="dark", label="Dark", synonyms=frozenset({"night"}), related=frozenset({"moody"})),
        Concept(id="light", label="Light", opposites=frozenset({"dark"})),
        Concept(id="moody", label="Moody"),
        Concept(id="playful", label="Playful", synonyms=frozenset({"fun"}), opposites=frozenset({"serious"})),
        Concept(id="serious", label="Serious"),
    ]


@pytest.fixture
def graph(concepts):
    return ConceptGraph(concepts)
