# Path: vibefilter/indexing/jobs.py
# Purpose: Offline jobs that rewrite derived data: tags, hub statistics, stored concept vectors.
# Layer: vibefilter/indexing.
# Details: Each job loads its inputs in bulk, computes sequentially, and writes once per item or run.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from tqdm import tqdm

from vibefilter.concepts.embeddings import ConceptEmbedder
from vibefilter.concepts.graph import ConceptGraph
from vibefilter.config.settings import HubSettings
from vibefilter.errors import DimensionMismatchError
from vibefilter.hubs.detector import HubDetector, build_probe_queries
from vibefilter.models.domain import HubDetectionResult
from vibefilter.search.corpus import ImageCorpus
from vibefilter.storage.base import CatalogStore
from vibefilter.tagging.tagger import Tagger

logger = logging.getLogger(__name__)


@dataclass
class RetagSummary:
    tagged: int = 0
    skipped: int = 0
    tag_total: int = 0


def retag_images(
    store: CatalogStore,
    tagger: Tagger,
    image_ids: Optional[Sequence[str]] = None,
    show_progress: bool = True,
) -> RetagSummary:
    """Re-run the tagger for stored embeddings and replace each image's tag set."""

    graph = ConceptGraph(store.list_concepts())
    summary = RetagSummary()
    if len(graph) == 0:
        logger.warning("No concepts stored; nothing to tag")
        return summary

    embeddings = store.load_embeddings(image_ids)
    for embedding in tqdm(embeddings, desc="Tagging images", unit="img", disable=not show_progress):
        try:
            tags = tagger.tag(embedding.vector, graph)
        except DimensionMismatchError as exc:
            logger.warning("Skipping image %s: %s", embedding.image_id, exc)
            summary.skipped += 1
            continue
        store.replace_tags(embedding.image_id, tags)
        summary.tagged += 1
        summary.tag_total += len(tags)

    logger.info(
        "Tagged %d images (%d skipped, %.1f tags per image)",
        summary.tagged,
        summary.skipped,
        summary.tag_total / summary.tagged if summary.tagged else 0.0,
    )
    return summary


def run_hub_detection(
    store: CatalogStore,
    detector: HubDetector,
    settings: HubSettings,
    clear: bool = False,
    target_ids: Optional[Sequence[str]] = None,
) -> HubDetectionResult:
    """
    Detect hubs over the whole stored corpus and persist the retained statistics.

    With ``target_ids`` only those images are updated, and targets that fell below the
    threshold have their stats nulled. ``clear`` applies to full runs only.
    """

    graph = ConceptGraph(store.list_concepts())
    probes = build_probe_queries((concept.label for concept in graph.concepts()), settings.synthetic_probes)
    corpus = ImageCorpus.from_embeddings(store.load_embeddings(), dim=detector.embedder.dim)

    result = detector.detect(corpus, probes, target_ids=target_ids)
    full_run = target_ids is None
    store.save_hub_stats(result.stats, clear=clear and full_run, cleared_ids=result.cleared_ids)
    logger.info("Stored hub stats for %d images (%d cleared)", len(result.stats), len(result.cleared_ids))
    return result


def refresh_concept_embeddings(
    store: CatalogStore,
    concept_embedder: ConceptEmbedder,
    include_related: bool = False,
) -> int:
    """
    Recompute and store every concept's embedding from its templated terms.

    The default phrasing matches the vectors the tagger computes, so stored embeddings
    can stand in for them.
    """

    concepts = store.list_concepts()
    matrix = concept_embedder.build(concepts, include_related=include_related)
    store.set_concept_embeddings(dict(zip(matrix.ids, matrix.vectors)))
    logger.info("Refreshed embeddings for %d concepts", len(matrix))
    return len(matrix)
