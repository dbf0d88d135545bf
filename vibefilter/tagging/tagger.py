# Path: vibefilter/tagging/tagger.py
# Purpose: Assign a bounded, ordered set of vocabulary concepts to one image embedding.
# Layer: vibefilter/tagging.
# Details: Zero-shot scoring against concept vectors, then threshold, drop, floor, and cap heuristics.

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import numpy as np

from vibefilter.concepts.embeddings import ConceptEmbedder, ConceptMatrix
from vibefilter.concepts.graph import ConceptGraph
from vibefilter.config.settings import TaggingSettings
from vibefilter.errors import DimensionMismatchError
from vibefilter.models.domain import TagScore
from vibefilter.vectors import cosine_many, is_unit

logger = logging.getLogger(__name__)


def rank_concepts(ids: Sequence[str], scores: Sequence[float]) -> List[TagScore]:
    """Pair ids with scores, highest score first and concept id as the tie-break."""

    pairs = [TagScore(concept_id=concept_id, score=float(score)) for concept_id, score in zip(ids, scores)]
    return sorted(pairs, key=lambda item: (-item.score, item.concept_id))


def select_tags(ranked: Sequence[TagScore], settings: TaggingSettings) -> List[TagScore]:
    """
    Apply the tagging heuristics to concepts already sorted by descending score.

    Concepts at or above ``min_score`` are accepted greedily until the relative drop
    from the previously accepted score exceeds ``min_score_drop_pct``; drops are ignored
    while fewer than ``min_tags_floor`` tags are held, and ``max_tags`` is a hard stop.
    When nothing clears ``min_score`` the top ``fallback_k`` positive concepts are used
    instead. The result is finally topped up from the best remaining positive concepts
    to ``min(min_tags_floor, len(ranked))``; non-positive scores are never tagged.
    """

    accepted: List[TagScore] = []
    for candidate in ranked:
        if candidate.score < settings.min_score or len(accepted) >= settings.max_tags:
            break
        if accepted and len(accepted) >= settings.min_tags_floor:
            previous = accepted[-1].score
            drop = (previous - candidate.score) / previous if previous > 0 else 0.0
            if drop > settings.min_score_drop_pct:
                break
        accepted.append(candidate)

    if not accepted:
        positive = [candidate for candidate in ranked if candidate.score > 0]
        accepted = positive[: settings.fallback_k]

    floor = min(settings.min_tags_floor, len(ranked), settings.max_tags)
    if len(accepted) < floor:
        chosen = {tag.concept_id for tag in accepted}
        for candidate in ranked:
            if len(accepted) >= floor:
                break
            if candidate.score > 0 and candidate.concept_id not in chosen:
                accepted.append(candidate)
                chosen.add(candidate.concept_id)

    return sorted(accepted, key=lambda item: (-item.score, item.concept_id))


class Tagger:
    """Zero-shot tagger over a concept graph snapshot."""

    def __init__(self, concept_embedder: ConceptEmbedder, settings: TaggingSettings) -> None:
        self.concept_embedder = concept_embedder
        self.settings = settings

    def score_concepts(self, vector: np.ndarray, concepts: ConceptMatrix) -> List[TagScore]:
        if len(concepts) == 0:
            return []
        if concepts.dim != vector.shape[0]:
            raise DimensionMismatchError(concepts.dim, int(vector.shape[0]), "image vs concept vectors")
        scores = cosine_many(concepts.vectors, vector.astype(np.float32))
        return rank_concepts(concepts.ids, scores)

    def concept_vectors(self, graph: ConceptGraph) -> ConceptMatrix:
        """
        Stored concept embeddings when every concept carries a usable one, otherwise
        vectors computed from the templated terms.
        """

        concepts = graph.concepts()
        dim = self.concept_embedder.embedder.dim
        stored = [concept.embedding for concept in concepts]
        if concepts and all(
            vector is not None and vector.shape == (dim,) and is_unit(vector) for vector in stored
        ):
            return ConceptMatrix([concept.id for concept in concepts], np.vstack(stored).astype(np.float32))
        return self.concept_embedder.for_graph(graph)

    def tag(self, vector: np.ndarray, graph: ConceptGraph) -> List[TagScore]:
        """Return the ordered tag set for one image embedding."""

        ranked = self.score_concepts(vector, self.concept_vectors(graph))
        tags = select_tags(ranked, self.settings)
        logger.debug("Selected %d of %d concepts", len(tags), len(ranked))
        return tags
