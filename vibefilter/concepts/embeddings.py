# Path: vibefilter/concepts/embeddings.py
# Purpose: Build concept vectors by embedding templated term phrases and pooling them.
# Layer: vibefilter/concepts.
# Details: One batched text-embedding pass per graph snapshot; results are cached by graph fingerprint.

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from vibefilter.embedders.base import EmbeddingModel
from vibefilter.models.domain import Concept
from vibefilter.vectors import l2_normalize

from .graph import ConceptGraph

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "website UI with a {term} visual style"


class ConceptMatrix:
    """Concept ids aligned with the rows of a unit-normalized vector matrix."""

    def __init__(self, ids: List[str], vectors: np.ndarray) -> None:
        self.ids = ids
        self.vectors = vectors

    def __len__(self) -> int:
        return len(self.ids)

    @property
    def dim(self) -> int:
        return int(self.vectors.shape[1]) if self.vectors.ndim == 2 and len(self.ids) else 0


class ConceptEmbedder:
    """Turn concepts into vectors by phrasing each term and averaging the phrase embeddings."""

    def __init__(
        self,
        embedder: EmbeddingModel,
        template: str = DEFAULT_TEMPLATE,
        batch_size: int = 32,
    ) -> None:
        self.embedder = embedder
        self.template = template
        self.batch_size = batch_size
        self._cache: Dict[Tuple[str, str, str], ConceptMatrix] = {}

    def phrases_for(self, concept: Concept, include_related: bool = False) -> List[str]:
        """Label first, then sorted synonyms (and related terms when requested), each templated."""

        terms: List[str] = [concept.label]
        terms.extend(sorted(s for s in concept.synonyms if s != concept.label))
        if include_related:
            terms.extend(sorted(r for r in concept.related if r not in terms))
        phrases = [self.template.format(term=term) for term in terms if term.strip()]
        return phrases or [self.template.format(term=concept.id)]

    def build(self, concepts: Sequence[Concept], include_related: bool = False) -> ConceptMatrix:
        """Embed every concept's phrases in batches and pool them per concept."""

        if not concepts:
            return ConceptMatrix([], np.zeros((0, self.embedder.dim), dtype=np.float32))

        phrases: List[str] = []
        spans: List[Tuple[int, int]] = []
        for concept in concepts:
            own = self.phrases_for(concept, include_related=include_related)
            spans.append((len(phrases), len(phrases) + len(own)))
            phrases.extend(own)

        embedded = self._embed_batched(phrases)
        rows = []
        for (start, stop) in spans:
            rows.append(l2_normalize(embedded[start:stop].mean(axis=0)))
        return ConceptMatrix([concept.id for concept in concepts], np.vstack(rows).astype(np.float32))

    def for_graph(self, graph: ConceptGraph) -> ConceptMatrix:
        """Tagging vectors for a graph snapshot, computed once per fingerprint and model."""

        key = (graph.fingerprint, self.embedder.model_name, self.template)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        logger.info("Embedding %d concepts for tagging", len(graph))
        matrix = self.build(graph.concepts())
        self._cache = {key: matrix}
        return matrix

    def _embed_batched(self, phrases: Sequence[str]) -> np.ndarray:
        chunks = []
        for start in range(0, len(phrases), self.batch_size):
            chunks.append(self.embedder.embed_texts(phrases[start : start + self.batch_size]))
        return np.vstack(chunks).astype(np.float32)

