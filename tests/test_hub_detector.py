"""
Tests for hub detection: accumulation, chance-rate gating, and incremental runs.
"""

import numpy as np
import pytest

from vibefilter.config import HubSettings
from vibefilter.hubs import HubAccumulator, HubDetector, build_probe_queries
from vibefilter.models import ImageEmbedding
from vibefilter.search.corpus import ImageCorpus
from vibefilter.vectors import l2_normalize

from conftest import FakeEmbedder


def _gating_accumulator():
    """Ten probes over ten images with top-2: "hub" appears in 6 probes, "chance" in 2."""
    accumulator = HubAccumulator(top_n=2, threshold_multiplier=1.5)
    for probe in range(10):
        first = ("hub", 0.9) if probe < 6 else (f"x{probe}", 0.5)
        second = ("chance", 0.8) if probe < 2 else (f"y{probe}", 0.4)
        accumulator.record([first, second])
    return accumulator


def test_build_probe_queries_dedupes_and_lowercases():
    probes = build_probe_queries(["Dark", "Cozy UI", " "], ["cozy ui", "dark mode"])
    assert probes == ["dark", "cozy ui", "dark mode"]


def test_chance_rate_is_not_flagged_but_outlier_is():
    """expected = 2/10, threshold = 0.3; 2/10 appearances stays out, 6/10 gets in."""
    result = _gating_accumulator().finalize(num_images=10)
    assert result.expected_hub_score == pytest.approx(0.2)
    assert result.hub_threshold == pytest.approx(0.3)
    assert "chance" not in result.stats
    assert set(result.stats) == {"hub"}

    hub = result.stats["hub"]
    assert hub.hub_count == 6
    assert hub.hub_score == pytest.approx(0.6)
    assert hub.avg_cosine_similarity == pytest.approx(0.9)
    # margins: 0.05 for the two probes shared with "chance", 0.25 for the other four
    assert hub.avg_cosine_similarity_margin == pytest.approx((2 * 0.05 + 4 * 0.25) / 6)


def test_target_ids_restrict_output_and_report_cleared():
    result = _gating_accumulator().finalize(num_images=10, target_ids={"hub", "chance", "absent"})
    assert set(result.stats) == {"hub"}
    assert result.cleared_ids == ["absent", "chance"]


def test_finalize_without_probes_is_empty():
    result = HubAccumulator(top_n=5, threshold_multiplier=1.5).finalize(num_images=0)
    assert result.stats == {}
    assert result.expected_hub_score == 0.0


def _corpus():
    vectors = {
        "hub": l2_normalize([1.0, 1.0, 1.0]),
        "x": np.array([1.0, 0.0, 0.0], dtype=np.float32),
        "y": np.array([0.0, 1.0, 0.0], dtype=np.float32),
        "z": np.array([0.0, 0.0, 1.0], dtype=np.float32),
    }
    return ImageCorpus.from_embeddings(
        [ImageEmbedding(image_id=key, vector=value, model="fake-model") for key, value in vectors.items()], dim=3
    )


def test_detector_flags_image_that_tops_every_probe():
    embedder = FakeEmbedder(
        dim=3,
        vectors={
            "p1": [1.0, 1.0, 0.9],
            "p2": [1.0, 0.9, 1.0],
            "p3": [0.9, 1.0, 1.0],
            "p4": [1.0, 1.0, 1.0],
        },
    )
    detector = HubDetector(embedder, HubSettings(top_n=1, threshold_multiplier=1.5, batch_size=3))
    result = detector.detect(_corpus(), ["p1", "p2", "p3", "p4"])

    assert result.num_queries == 4
    assert result.num_images == 4
    assert set(result.stats) == {"hub"}
    assert result.stats["hub"].hub_score == pytest.approx(1.0)
    assert result.stats["hub"].avg_cosine_similarity_margin == pytest.approx(0.0, abs=1e-6)
    assert len(embedder.text_calls) == 2


def test_detector_on_empty_corpus():
    detector = HubDetector(FakeEmbedder(dim=3), HubSettings())
    result = detector.detect(ImageCorpus(dim=3), ["dark"])
    assert result.stats == {}
    assert result.num_queries == 0


def test_corpus_skips_foreign_dimensions():
    corpus = ImageCorpus.from_embeddings(
        [
            ImageEmbedding(image_id="ok", vector=np.array([1.0, 0.0, 0.0], dtype=np.float32), model="m"),
            ImageEmbedding(image_id="bad", vector=np.array([1.0, 0.0], dtype=np.float32), model="m"),
        ],
        dim=3,
    )
    assert corpus.ids == ["ok"]
