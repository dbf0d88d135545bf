"""
Tests for the SQLite catalog store.
"""

import numpy as np
import pytest

from vibefilter.errors import EmbeddingError
from vibefilter.models import SOURCE_GENERATED, HubStats, ImageEmbedding, ImageRecord, TagScore
from vibefilter.storage import SQLiteStore
from vibefilter.vectors import l2_normalize


def embedding(image_id, values, content_hash=None):
    return ImageEmbedding(image_id=image_id, vector=l2_normalize(values), model="fake-model", content_hash=content_hash)


def stats(score):
    return HubStats(hub_count=3, hub_score=score, avg_cosine_similarity=0.3, avg_cosine_similarity_margin=0.01)


def test_concepts_round_trip(store, concepts):
    assert store.upsert_concepts(concepts) == len(concepts)
    loaded = {concept.id: concept for concept in store.list_concepts()}
    assert set(loaded) == {concept.id for concept in concepts}
    assert loaded["dark"].related == frozenset({"moody"})
    assert loaded["light"].opposites == frozenset({"dark"})
    assert loaded["3d"].embedding is None


def test_concept_embeddings_must_be_unit(store, concepts):
    store.upsert_concepts(concepts)
    store.set_concept_embeddings({"3d": l2_normalize([1.0, 2.0])})
    loaded = {concept.id: concept for concept in store.list_concepts()}
    np.testing.assert_allclose(loaded["3d"].embedding, l2_normalize([1.0, 2.0]))
    with pytest.raises(EmbeddingError):
        store.set_concept_embeddings({"dark": np.array([3.0, 4.0], dtype=np.float32)})


def test_embeddings_round_trip_and_hash_lookup(store):
    store.save_embeddings([embedding("a", [1.0, 0.0, 0.0], "h1"), embedding("b", [0.0, 1.0, 0.0], "h2")])
    loaded = store.load_embeddings(["b"])
    assert [item.image_id for item in loaded] == ["b"]
    np.testing.assert_allclose(loaded[0].vector, [0.0, 1.0, 0.0])
    np.testing.assert_allclose(store.find_embedding_by_hash("h1", "fake-model"), [1.0, 0.0, 0.0])
    assert store.find_embedding_by_hash("h1", "other-model") is None
    assert [record.id for record in store.list_images()] == ["a", "b"]


def test_non_unit_embeddings_are_refused(store):
    bad = ImageEmbedding(image_id="x", vector=np.array([2.0, 0.0], dtype=np.float32), model="fake-model")
    with pytest.raises(EmbeddingError):
        store.save_embeddings([bad])
    assert store.load_embeddings() == []


def test_replace_tags_replaces_whole_set(store):
    store.replace_tags("img", [TagScore("dark", 0.4), TagScore("moody", 0.3)])
    store.replace_tags("img", [TagScore("light", 0.5)])
    tags = store.load_tags(["img"])["img"]
    assert [(tag.concept_id, tag.score) for tag in tags] == [("light", 0.5)]


def test_hub_stats_clear_nulls_previous_rows(store):
    store.upsert_images([ImageRecord(id="a"), ImageRecord(id="b")])
    store.save_hub_stats({"a": stats(0.5), "b": stats(0.6)})
    store.save_hub_stats({"b": stats(0.7)}, clear=True)
    loaded = store.load_hub_stats()
    assert set(loaded) == {"b"}
    assert loaded["b"].hub_score == pytest.approx(0.7)


def test_hub_stats_cleared_ids_only(store):
    store.save_hub_stats({"a": stats(0.5), "b": stats(0.6)})
    store.save_hub_stats({}, cleared_ids=["a"])
    assert set(store.load_hub_stats()) == {"b"}


def test_load_candidates_joins_tables(store):
    store.upsert_images([ImageRecord(id="no-vector", category="website")])
    store.save_embeddings([embedding("a", [1.0, 0.0])])
    store.replace_tags("a", [TagScore("3d", 0.31)])
    store.save_hub_stats({"a": stats(0.4)})

    candidates = {candidate.image_id: candidate for candidate in store.load_candidates()}
    assert set(candidates) == {"a", "no-vector"}
    assert candidates["no-vector"].vector is None
    assert [tag.concept_id for tag in candidates["a"].tags] == ["3d"]
    assert candidates["a"].hub_stats.hub_score == pytest.approx(0.4)

    only = store.load_candidates(["a"])
    assert [candidate.image_id for candidate in only] == ["a"]


def test_expansion_inserts_are_idempotent(store):
    assert store.add_expansions("cozy", "website", ["a", "b"], source=SOURCE_GENERATED, model="m") == 2
    assert store.add_expansions("cozy", "website", ["b", "c", " "], source=SOURCE_GENERATED, model="m") == 1
    entries = store.get_expansions("cozy", "website", source=SOURCE_GENERATED)
    assert [entry.expansion for entry in entries] == ["a", "b", "c"]
    assert store.get_expansions("cozy", "packaging", source=SOURCE_GENERATED) == []


def test_touch_updates_last_used(store):
    store.add_expansions("cozy", "website", ["a"], source=SOURCE_GENERATED)
    before = store.get_expansions("cozy", "website", source=SOURCE_GENERATED)[0].last_used_at
    store.touch_expansions("cozy", "website", source=SOURCE_GENERATED)
    after = store.get_expansions("cozy", "website", source=SOURCE_GENERATED)[0].last_used_at
    assert after >= before


def test_file_backed_store_persists(tmp_path):
    path = tmp_path / "db" / "catalog.sqlite3"
    with SQLiteStore(path) as first:
        first.save_embeddings([embedding("a", [0.0, 1.0])])
    with SQLiteStore(path) as second:
        assert [item.image_id for item in second.load_embeddings()] == ["a"]
