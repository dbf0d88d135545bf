# Path: vibefilter/ranking/composer.py
# Purpose: Combine base similarity, tag matches, opposites, and hub penalties into one ordering.
# Layer: vibefilter/ranking.
# Details: Pure and synchronous over bulk-loaded candidates; every constant comes from RankingSettings.

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Set

import numpy as np

from vibefilter.concepts.graph import ConceptGraph
from vibefilter.config.settings import RankingSettings
from vibefilter.models.domain import HubStats, QuerySignal, RankedImage, RankingCandidate, TagScore
from vibefilter.search.pooling import PoolingStrategy, SoftmaxPooling

from .matching import match_query_concepts

logger = logging.getLogger(__name__)


def compute_hub_multiplier(base_score: float, hub_stats: Optional[HubStats], settings: RankingSettings) -> float:
    """
    Multiplier applied to the base score of a hub image.

    The absolute penalty combines the average margin above each probe's top-N mean with
    the hub frequency. Hubs that trail their probes' averages get a reduced frequency
    penalty. The penalty is expressed as a capped share of the base score and the
    multiplier never falls below ``hub_min_multiplier``.
    """

    if hub_stats is None or hub_stats.hub_score <= settings.hub_reporting_floor:
        return 1.0

    margin = hub_stats.avg_cosine_similarity_margin
    margin_penalty = max(0.0, margin * settings.margin_penalty_factor)
    frequency_scale = settings.negative_margin_scale if margin < 0 else 1.0
    frequency_penalty = hub_stats.hub_score * settings.frequency_penalty_factor * frequency_scale
    absolute_penalty = margin_penalty + frequency_penalty

    penalty_pct = min(absolute_penalty / base_score, settings.hub_penalty_cap_pct) if base_score > 0 else 0.0
    return max(settings.hub_min_multiplier, 1.0 - penalty_pct)


class RankingComposer:
    """Orders candidate images for one query signal."""

    def __init__(
        self,
        graph: ConceptGraph,
        settings: RankingSettings,
        pooling: Optional[PoolingStrategy] = None,
    ) -> None:
        self.graph = graph
        self.settings = settings
        self.pooling = pooling or SoftmaxPooling()

    def base_score(self, signal: QuerySignal, vector: np.ndarray) -> float:
        if signal.vectors.shape[0] == 0:
            return 0.0
        scores = signal.vectors.astype(np.float32) @ vector.astype(np.float32)
        return self.pooling.pool(scores.tolist())

    def _related_terms(self, matched: Sequence[str]) -> Set[str]:
        terms: Set[str] = set()
        for concept_id in matched:
            terms.update(self.graph.expanded_terms(concept_id))
        return terms

    def _is_related(self, concept_id: str, related_terms: Set[str]) -> bool:
        if concept_id.lower() in related_terms:
            return True
        concept = self.graph.get(concept_id)
        return concept is not None and concept.label.strip().lower() in related_terms

    def score_candidate(
        self,
        signal: QuerySignal,
        candidate: RankingCandidate,
        matched: Sequence[str],
        related_terms: Set[str],
        opposite_ids: Set[str],
    ) -> RankedImage:
        settings = self.settings
        if candidate.vector is None:
            raise ValueError(f"Candidate {candidate.image_id} has no embedding to score.")
        base = self.base_score(signal, candidate.vector)
        multiplier = compute_hub_multiplier(base, candidate.hub_stats, settings)
        adjusted = base * multiplier

        matched_set = set(matched)
        direct: List[TagScore] = []
        related: List[TagScore] = []
        opposites: List[TagScore] = []
        for tag in candidate.tags:
            scored = TagScore(concept_id=tag.concept_id, score=tag.score)
            if tag.concept_id in matched_set:
                direct.append(scored)
                continue
            if self._is_related(tag.concept_id, related_terms):
                related.append(scored)
            if tag.concept_id in opposite_ids:
                opposites.append(scored)

        if not candidate.tags:
            score = adjusted * settings.zero_no_direct
        elif direct:
            direct_sum = sum(tag.score for tag in direct)
            if len(matched_set) > 1:
                present = len({tag.concept_id for tag in direct})
                direct_sum *= max(settings.min_completeness, present / len(matched_set))
            score = settings.direct_multiplier * direct_sum + adjusted * settings.zero_with_direct
        elif related:
            related_max = max(tag.score for tag in related)
            if related_max >= settings.related_min:
                score = related_max + adjusted * settings.zero_with_related
            else:
                score = adjusted * settings.zero_with_related
        else:
            score = adjusted * settings.zero_no_direct

        if opposites and settings.opposite_penalty > 0:
            score -= settings.opposite_penalty * sum(tag.score for tag in opposites)

        return RankedImage(
            image_id=candidate.image_id,
            score=float(score),
            base_score=float(base),
            adjusted_base_score=float(adjusted),
            direct_matches=sorted(direct, key=lambda t: (-t.score, t.concept_id)),
            related_matches=sorted(related, key=lambda t: (-t.score, t.concept_id)),
            opposite_concept_ids=sorted(tag.concept_id for tag in opposites),
            hub_penalty_multiplier=float(multiplier),
            hub_stats=candidate.hub_stats,
            tag_count=len(candidate.tags),
        )

    def rank(
        self,
        signal: QuerySignal,
        candidates: Sequence[RankingCandidate],
        matched_concept_ids: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> List[RankedImage]:
        """
        Score and order ``candidates`` for ``signal``.

        Candidates without an embedding, or whose embedding dimension differs from the
        query's, are left out and logged. Ordering: score, then having a direct match,
        then the number of direct matches, then base score, then image id.
        """

        matched = (
            list(matched_concept_ids)
            if matched_concept_ids is not None
            else match_query_concepts(signal.query, self.graph)
        )
        related_terms = self._related_terms(matched)
        opposite_ids: Set[str] = set()
        for concept_id in matched:
            opposite_ids.update(self.graph.opposites_of(concept_id))
        opposite_ids.difference_update(matched)

        results: List[RankedImage] = []
        excluded = 0
        for candidate in candidates:
            if candidate.vector is None:
                logger.warning("Excluding image %s from ranking: no embedding", candidate.image_id)
                excluded += 1
                continue
            if signal.vectors.shape[0] and candidate.vector.shape[0] != signal.dim:
                logger.warning(
                    "Excluding image %s from ranking: dimension %d, query %d",
                    candidate.image_id,
                    candidate.vector.shape[0],
                    signal.dim,
                )
                excluded += 1
                continue
            results.append(self.score_candidate(signal, candidate, matched, related_terms, opposite_ids))

        results.sort(
            key=lambda r: (-r.score, not r.has_direct_match, -len(r.direct_matches), -r.base_score, r.image_id)
        )
        logger.debug(
            "Ranked %d images for %r (%d matched concepts, %d excluded)", len(results), signal.query, len(matched), excluded
        )
        return results[:limit] if limit is not None else results
