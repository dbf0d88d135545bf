# Path: vibefilter/hubs/detector.py
# Purpose: Find images that rank near the top for many unrelated probe queries.
# Layer: vibefilter/hubs.
# Details: Offline batch computation; only images well above the chance rate are reported.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np
from tqdm import tqdm

from vibefilter.config.settings import HubSettings
from vibefilter.embedders.base import EmbeddingModel
from vibefilter.models.domain import HubDetectionResult, HubStats
from vibefilter.search.corpus import ImageCorpus

logger = logging.getLogger(__name__)


def build_probe_queries(labels: Iterable[str], synthetic: Iterable[str]) -> List[str]:
    """Lowercased concept labels followed by the synthetic phrases, deduplicated in order."""

    probes: List[str] = []
    seen: Set[str] = set()
    for raw in list(labels) + list(synthetic):
        probe = raw.strip().lower()
        if probe and probe not in seen:
            seen.add(probe)
            probes.append(probe)
    return probes


@dataclass
class _Tally:
    count: int = 0
    score_sum: float = 0.0
    margin_sum: float = 0.0


class HubAccumulator:
    """Collects top-N appearances per probe and turns them into gated hub statistics."""

    def __init__(self, top_n: int, threshold_multiplier: float) -> None:
        self.top_n = top_n
        self.threshold_multiplier = threshold_multiplier
        self.num_queries = 0
        self._tallies: Dict[str, _Tally] = {}

    def record(self, top: Sequence[Tuple[str, float]]) -> None:
        """Add one probe's top-N ``(image_id, score)`` list."""

        self.num_queries += 1
        if not top:
            return
        query_mean = sum(score for _, score in top) / len(top)
        for image_id, score in top:
            tally = self._tallies.setdefault(image_id, _Tally())
            tally.count += 1
            tally.score_sum += score
            tally.margin_sum += score - query_mean

    def finalize(self, num_images: int, target_ids: Optional[Set[str]] = None) -> HubDetectionResult:
        expected = self.top_n / num_images if num_images else 0.0
        threshold = expected * self.threshold_multiplier
        stats: Dict[str, HubStats] = {}

        if self.num_queries > 0:
            for image_id in sorted(self._tallies):
                if target_ids is not None and image_id not in target_ids:
                    continue
                tally = self._tallies[image_id]
                hub_score = tally.count / self.num_queries
                if hub_score <= threshold:
                    continue
                stats[image_id] = HubStats(
                    hub_count=tally.count,
                    hub_score=hub_score,
                    avg_cosine_similarity=tally.score_sum / tally.count if tally.count else 0.0,
                    avg_cosine_similarity_margin=tally.margin_sum / tally.count if tally.count else 0.0,
                )

        cleared = sorted(target_ids - set(stats)) if target_ids is not None else []
        return HubDetectionResult(
            stats=stats,
            num_queries=self.num_queries,
            num_images=num_images,
            expected_hub_score=expected,
            hub_threshold=threshold,
            cleared_ids=cleared,
        )


class HubDetector:
    """Runs a probe battery against an image corpus."""

    def __init__(self, embedder: EmbeddingModel, settings: HubSettings, show_progress: bool = False) -> None:
        self.embedder = embedder
        self.settings = settings
        self.show_progress = show_progress

    def detect(
        self,
        corpus: ImageCorpus,
        probes: Sequence[str],
        target_ids: Optional[Iterable[str]] = None,
    ) -> HubDetectionResult:
        """
        Compute hub statistics for every image in ``corpus``.

        Scores always come from the full corpus. When ``target_ids`` is given, only those
        images are reported; targets that no longer clear the threshold are listed in
        ``cleared_ids`` so their stored statistics can be removed.
        """

        targets = set(target_ids) if target_ids is not None else None
        accumulator = HubAccumulator(self.settings.top_n, self.settings.threshold_multiplier)
        if len(corpus) == 0 or not probes:
            logger.warning("Hub detection skipped: %d images, %d probes", len(corpus), len(probes))
            return accumulator.finalize(len(corpus), targets)

        batches = range(0, len(probes), self.settings.batch_size)
        for start in tqdm(batches, desc="Hub probes", unit="batch", disable=not self.show_progress):
            batch = list(probes[start : start + self.settings.batch_size])
            vectors = self.embedder.embed_texts(batch)
            for probe, vector in zip(batch, vectors):
                if vector.shape[0] != corpus.dim:
                    logger.warning("Skipping probe %r: dimension %d, corpus %d", probe, vector.shape[0], corpus.dim)
                    continue
                accumulator.record(corpus.top_n(np.asarray(vector, dtype=np.float32), self.settings.top_n))

        result = accumulator.finalize(len(corpus), targets)
        logger.info(
            "Hub detection: %d probes over %d images, expected %.4f, threshold %.4f, %d hubs",
            result.num_queries,
            result.num_images,
            result.expected_hub_score,
            result.hub_threshold,
            len(result.stats),
        )
        return result
