"""
Tests for screenshot ingestion and the offline retag, hub, and concept refresh jobs.
"""

import numpy as np
import pytest
from PIL import Image

from vibefilter.concepts import ConceptEmbedder, ConceptGraph
from vibefilter.config import HubSettings, TaggingSettings
from vibefilter.hubs import HubDetector
from vibefilter.indexing import (
    ImageIndexer,
    ScreenshotScanner,
    refresh_concept_embeddings,
    retag_images,
    run_hub_detection,
)
from vibefilter.models import HubStats, ImageEmbedding, TagScore
from vibefilter.tagging import Tagger
from vibefilter.vectors import is_unit, l2_normalize

from conftest import FakeEmbedder


@pytest.fixture
def screenshots(tmp_path):
    folder = tmp_path / "shots"
    (folder / "sites").mkdir(parents=True)
    Image.new("RGB", (12, 8), color=(10, 120, 200)).save(folder / "sites" / "alpha.png")
    Image.new("RGB", (12, 8), color=(10, 120, 200)).save(folder / "sites" / "alpha-copy.png")
    Image.new("RGB", (12, 8), color=(240, 240, 20)).save(folder / "beta.jpg")
    (folder / "notes.txt").write_text("not an image")
    (folder / "broken.png").write_bytes(b"broken")
    return folder


def test_scanner_derives_ids_from_paths(screenshots):
    files = ScreenshotScanner(screenshots, category="website").scan()
    assert [item.record.id for item in files] == ["beta", "broken", "sites/alpha-copy", "sites/alpha"]
    assert all(item.record.category == "website" for item in files)


def test_indexer_reuses_embeddings_for_identical_pixels(screenshots, store):
    embedder = FakeEmbedder(dim=8)
    summary = ImageIndexer(embedder, store, batch_size=1).index(
        ScreenshotScanner(screenshots).scan(), show_progress=False
    )
    assert summary.embedded == 2
    assert summary.reused == 1
    assert summary.failed == 1

    stored = {item.image_id: item for item in store.load_embeddings()}
    assert set(stored) == {"beta", "sites/alpha", "sites/alpha-copy"}
    assert stored["sites/alpha"].content_hash == stored["sites/alpha-copy"].content_hash
    np.testing.assert_array_equal(stored["sites/alpha"].vector, stored["sites/alpha-copy"].vector)
    assert all(is_unit(item.vector) for item in stored.values())


def test_retag_replaces_tags(store, concepts):
    store.upsert_concepts(concepts)
    store.save_embeddings(
        [
            ImageEmbedding(image_id="a", vector=l2_normalize(np.arange(1, 9)), model="fake-model"),
            ImageEmbedding(image_id="b", vector=l2_normalize(np.arange(8, 0, -1)), model="fake-model"),
        ]
    )
    store.replace_tags("a", [TagScore("stale", 0.9)])
    settings = TaggingSettings(min_tags_floor=3)
    tagger = Tagger(ConceptEmbedder(FakeEmbedder(dim=8)), settings)

    summary = retag_images(store, tagger, show_progress=False)
    assert summary.tagged == 2
    tags = store.load_tags()
    assert "stale" not in {tag.concept_id for tag in tags["a"]}
    vector_b = store.load_embeddings(["b"])[0].vector
    graph = ConceptGraph(store.list_concepts())
    positive = [tag for tag in tagger.score_concepts(vector_b, tagger.concept_vectors(graph)) if tag.score > 0]
    assert len(tags["b"]) >= min(3, len(positive))
    assert all(tag.score > 0 for tag in tags["b"])


def test_retag_skips_foreign_dimensions(store, concepts):
    store.upsert_concepts(concepts)
    store.save_embeddings([ImageEmbedding(image_id="small", vector=l2_normalize([1.0, 1.0]), model="old")])
    tagger = Tagger(ConceptEmbedder(FakeEmbedder(dim=8)), TaggingSettings())
    summary = retag_images(store, tagger, show_progress=False)
    assert summary.skipped == 1
    assert store.load_tags() == {}


def test_hub_detection_job_persists_and_clears(store):
    embedder = FakeEmbedder(dim=3, vectors={"cozy ui": [1.0, 1.0, 0.9], "dark mode": [0.9, 1.0, 1.0]})
    store.save_embeddings(
        [
            ImageEmbedding(image_id="hub", vector=l2_normalize([1.0, 1.0, 1.0]), model="fake-model"),
            ImageEmbedding(image_id="x", vector=np.array([1.0, 0.0, 0.0], dtype=np.float32), model="fake-model"),
            ImageEmbedding(image_id="y", vector=np.array([0.0, 1.0, 0.0], dtype=np.float32), model="fake-model"),
            ImageEmbedding(image_id="z", vector=np.array([0.0, 0.0, 1.0], dtype=np.float32), model="fake-model"),
        ]
    )
    stale = HubStats(hub_count=1, hub_score=0.9, avg_cosine_similarity=0.5, avg_cosine_similarity_margin=0.1)
    store.save_hub_stats({"x": stale})
    settings = HubSettings(top_n=1, synthetic_probes=["cozy ui", "dark mode"])
    detector = HubDetector(embedder, settings)

    result = run_hub_detection(store, detector, settings, clear=True)
    assert set(result.stats) == {"hub"}
    assert set(store.load_hub_stats()) == {"hub"}


def test_refresh_concept_embeddings(store, concepts):
    store.upsert_concepts(concepts)
    concept_embedder = ConceptEmbedder(FakeEmbedder(dim=8))
    count = refresh_concept_embeddings(store, concept_embedder)
    assert count == len(concepts)
    stored = store.list_concepts()
    assert all(concept.embedding is not None and is_unit(concept.embedding) for concept in stored)

    computed = concept_embedder.for_graph(ConceptGraph(concepts))
    by_id = {concept.id: concept.embedding for concept in stored}
    for concept_id, row in zip(computed.ids, computed.vectors):
        np.testing.assert_allclose(by_id[concept_id], row, atol=1e-6)
