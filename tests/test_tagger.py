"""
Tests for the zero-shot tagger and its selection heuristics.
"""

import numpy as np
import pytest

from vibefilter.concepts import ConceptEmbedder, ConceptGraph
from vibefilter.concepts.embeddings import ConceptMatrix
from vibefilter.config import TaggingSettings
from vibefilter.errors import DimensionMismatchError
from vibefilter.models import Concept, TagScore
from vibefilter.tagging import Tagger, rank_concepts, select_tags
from vibefilter.vectors import is_unit, l2_normalize

from conftest import FakeEmbedder


def ranked(*pairs):
    return rank_concepts([concept_id for concept_id, _ in pairs], [score for _, score in pairs])


def ids(tags):
    return [tag.concept_id for tag in tags]


def test_rank_concepts_orders_by_score_then_id():
    result = ranked(("b", 0.5), ("a", 0.5), ("c", 0.9))
    assert ids(result) == ["c", "a", "b"]


def test_relative_drop_stops_acceptance():
    settings = TaggingSettings(min_score=0.2, max_tags=10, min_score_drop_pct=0.3, min_tags_floor=2, fallback_k=3)
    tags = select_tags(ranked(("a", 0.9), ("b", 0.85), ("c", 0.8), ("d", 0.4), ("e", 0.1)), settings)
    assert ids(tags) == ["a", "b", "c"]


def test_floor_ignores_drops():
    settings = TaggingSettings(min_score=0.2, max_tags=10, min_score_drop_pct=0.3, min_tags_floor=3, fallback_k=3)
    tags = select_tags(ranked(("a", 0.9), ("b", 0.3), ("c", 0.25), ("d", 0.1)), settings)
    assert ids(tags) == ["a", "b", "c"]


def test_max_tags_is_a_hard_stop():
    settings = TaggingSettings(min_score=0.2, max_tags=2, min_score_drop_pct=0.3, min_tags_floor=1, fallback_k=3)
    tags = select_tags(ranked(("a", 0.5), ("b", 0.5), ("c", 0.5)), settings)
    assert ids(tags) == ["a", "b"]


def test_fallback_when_nothing_clears_min_score():
    settings = TaggingSettings(min_score=0.2, max_tags=10, min_score_drop_pct=0.3, min_tags_floor=2, fallback_k=3)
    tags = select_tags(ranked(("a", 0.15), ("b", 0.1), ("c", 0.05), ("d", 0.01)), settings)
    assert ids(tags) == ["a", "b", "c"]


def test_result_is_topped_up_to_floor():
    settings = TaggingSettings(min_score=0.2, max_tags=10, min_score_drop_pct=0.3, min_tags_floor=4, fallback_k=2)
    tags = select_tags(ranked(("a", 0.9), ("b", 0.1), ("c", 0.05), ("d", 0.01), ("e", 0.0)), settings)
    assert ids(tags) == ["a", "b", "c", "d"]


def test_floor_is_capped_by_vocabulary_size():
    settings = TaggingSettings(min_tags_floor=8)
    tags = select_tags(ranked(("a", 0.05), ("b", 0.02)), settings)
    assert ids(tags) == ["a", "b"]
    assert select_tags([], settings) == []


def test_concept_vectors_pool_templated_terms():
    template = "website UI with a {term} visual style"
    embedder = FakeEmbedder(
        dim=2,
        vectors={
            template.format(term="Warm"): [1.0, 0.0],
            template.format(term="cozy"): [0.0, 1.0],
        },
    )
    concept_embedder = ConceptEmbedder(embedder, template=template, batch_size=1)
    matrix = concept_embedder.build([Concept(id="warm", label="Warm", synonyms=frozenset({"cozy"}))])
    assert matrix.ids == ["warm"]
    np.testing.assert_allclose(matrix.vectors[0], l2_normalize([0.5, 0.5]), rtol=1e-6)
    assert len(embedder.text_calls) == 2


def test_concept_vectors_are_cached_per_graph(concepts):
    embedder = FakeEmbedder(dim=8)
    concept_embedder = ConceptEmbedder(embedder)
    graph = ConceptGraph(concepts)
    first = concept_embedder.for_graph(graph)
    calls = len(embedder.text_calls)
    second = concept_embedder.for_graph(ConceptGraph(concepts))
    assert second is first
    assert len(embedder.text_calls) == calls
    assert all(is_unit(row) for row in first.vectors)


def test_tagging_is_deterministic_and_meets_floor(concepts):
    settings = TaggingSettings(min_score=0.2, max_tags=700, min_score_drop_pct=0.3, min_tags_floor=4, fallback_k=2)
    tagger = Tagger(ConceptEmbedder(FakeEmbedder(dim=16)), settings)
    graph = ConceptGraph(concepts)
    image = l2_normalize(np.arange(1, 17, dtype=np.float32))

    first = tagger.tag(image, graph)
    second = tagger.tag(image.copy(), graph)
    positive = [tag for tag in tagger.score_concepts(image, tagger.concept_vectors(graph)) if tag.score > 0]
    assert first == second
    assert len(first) >= min(settings.min_tags_floor, len(positive))
    assert all(0 < tag.score <= 1 for tag in first)
    assert [tag.score for tag in first] == sorted((tag.score for tag in first), reverse=True)


def test_dimension_mismatch_is_raised():
    tagger = Tagger(ConceptEmbedder(FakeEmbedder(dim=4)), TaggingSettings())
    matrix = ConceptMatrix(["a"], np.array([[1.0, 0.0, 0.0, 0.0]], dtype=np.float32))
    with pytest.raises(DimensionMismatchError):
        tagger.score_concepts(np.array([1.0, 0.0], dtype=np.float32), matrix)


def test_tag_scores_are_comparable():
    assert TagScore("a", 0.5) == TagScore("a", 0.5)


def test_settings_reject_floor_above_cap():
    with pytest.raises(ValueError):
        TaggingSettings(max_tags=2, min_tags_floor=3)


def test_fallback_skips_non_positive_scores():
    settings = TaggingSettings(min_score=0.2, max_tags=10, min_score_drop_pct=0.3, min_tags_floor=0, fallback_k=3)
    tags = select_tags(ranked(("a", 0.07), ("b", 0.0), ("c", -0.06), ("d", -0.2)), settings)
    assert ids(tags) == ["a"]


def test_floor_top_up_skips_non_positive_scores():
    """Weak images end with fewer tags rather than negatively correlated ones."""
    settings = TaggingSettings(min_score=0.2, max_tags=10, min_score_drop_pct=0.3, min_tags_floor=8, fallback_k=2)
    tags = select_tags(ranked(("a", 0.05), ("b", 0.01), ("c", 0.0), ("d", -0.07)), settings)
    assert ids(tags) == ["a", "b"]
    assert select_tags(ranked(("a", -0.1), ("b", -0.3)), settings) == []


def test_stored_concept_embeddings_are_used_when_complete(concepts):
    embedder = FakeEmbedder(dim=2)
    tagger = Tagger(ConceptEmbedder(embedder), TaggingSettings(min_tags_floor=1, fallback_k=1))
    stored = [
        Concept(id=concept.id, label=concept.label, embedding=l2_normalize([1.0, float(index)]))
        for index, concept in enumerate(concepts)
    ]

    matrix = tagger.concept_vectors(ConceptGraph(stored))
    assert matrix.ids == sorted(concept.id for concept in stored)
    np.testing.assert_allclose(matrix.vectors[0], l2_normalize([1.0, 0.0]))
    assert embedder.text_calls == []


def test_missing_stored_embedding_falls_back_to_terms(concepts):
    embedder = FakeEmbedder(dim=2)
    tagger = Tagger(ConceptEmbedder(embedder), TaggingSettings())
    partial = [Concept(id="3d", label="3D", embedding=l2_normalize([1.0, 0.0])), Concept(id="dark", label="Dark")]

    matrix = tagger.concept_vectors(ConceptGraph(partial))
    assert matrix.ids == ["3d", "dark"]
    assert len(embedder.text_calls) == 1
