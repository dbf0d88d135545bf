"""
End-to-end tests of the library facade over an in-memory catalog.
"""

import logging
from unittest.mock import MagicMock

import numpy as np
import pytest

from vibefilter.config import AppSettings
from vibefilter.errors import EmbeddingError
from vibefilter.models import ImageEmbedding, TagScore
from vibefilter.search.pipeline import SearchPipeline
from vibefilter.vectors import l2_normalize

from conftest import FakeEmbedder


@pytest.fixture
def pipeline(store, concepts):
    store.upsert_concepts(concepts)
    embedder = FakeEmbedder(dim=2, vectors={"3d": [1.0, 0.0]})
    return SearchPipeline(store, embedder, settings=AppSettings())


def save(store, image_id, base):
    vector = np.array([base, np.sqrt(1.0 - base * base)], dtype=np.float32)
    store.save_embeddings([ImageEmbedding(image_id=image_id, vector=vector, model="fake-model")])


def test_rank_images_3d_scenario(pipeline, store):
    save(store, "tagged", 0.22)
    save(store, "untagged", 0.9)
    store.replace_tags("tagged", [TagScore("3d", 0.31)])

    results = pipeline.rank_images("3d")
    assert [r.image_id for r in results] == ["tagged", "untagged"]
    assert results[0].score == pytest.approx(3.122, abs=1e-5)
    assert results[1].score == pytest.approx(0.045, abs=1e-5)


def test_rank_images_respects_candidates_and_limit(pipeline, store):
    for index, base in enumerate([0.1, 0.2, 0.3]):
        save(store, f"img{index}", base)
    results = pipeline.rank_images("3d", candidate_ids=["img0", "img2"], limit=1)
    assert [r.image_id for r in results] == ["img2"]
    assert pipeline.rank_images("   ") == []


def test_tag_image_persists_tags(pipeline, store):
    store.save_embeddings([ImageEmbedding(image_id="img", vector=l2_normalize([0.3, 0.7]), model="fake-model")])
    tags = pipeline.tag_image("img")
    graph = pipeline.load_graph()
    scored = pipeline.tagger.score_concepts(l2_normalize([0.3, 0.7]), pipeline.tagger.concept_vectors(graph))
    positive = [tag for tag in scored if tag.score > 0]
    assert len(tags) >= min(pipeline.settings.tagging.min_tags_floor, len(positive))
    assert all(0 < tag.score <= 1 for tag in tags)
    stored = store.load_tags(["img"])["img"]
    assert sorted(tag.concept_id for tag in stored) == sorted(tag.concept_id for tag in tags)


def test_tag_image_without_embedding_raises(pipeline):
    with pytest.raises(EmbeddingError):
        pipeline.tag_image("missing")


def test_abstract_query_uses_generator_once(store, concepts):
    store.upsert_concepts(concepts)
    generator = MagicMock()
    generator.model = "test-model"
    generator.generate.return_value = ["warm brown palette", "soft shadows"]
    pipeline = SearchPipeline(store, FakeEmbedder(dim=2), settings=AppSettings(), generator=generator)
    save(store, "img", 0.5)

    first = pipeline.rank_images("cozy", category="website")
    second = pipeline.rank_images("cozy", category="website")
    assert generator.generate.call_count == 1
    assert [r.image_id for r in first] == [r.image_id for r in second] == ["img"]


def test_rank_images_logs_ranking_constants_version(pipeline, store, caplog):
    save(store, "img", 0.5)
    caplog.set_level(logging.INFO, logger="vibefilter.search.pipeline")
    pipeline.rank_images("3d")
    assert f"ranking constants {pipeline.settings.ranking.version}" in caplog.text
