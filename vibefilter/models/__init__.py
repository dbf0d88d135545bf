# Path: vibefilter/models/__init__.py
# Purpose: Package initializer for domain model definitions.
# Layer: vibefilter/models.
# Details: Exposes dataclasses used across storage, tagging, hub detection, and ranking.

from .domain import (
    SOURCE_CURATED,
    SOURCE_GENERATED,
    Concept,
    HubDetectionResult,
    HubStats,
    ImageEmbedding,
    ImageRecord,
    ImageTag,
    QueryExpansionEntry,
    QuerySignal,
    RankedImage,
    RankingCandidate,
    TagScore,
)

__all__ = [
    "SOURCE_CURATED",
    "SOURCE_GENERATED",
    "Concept",
    "HubDetectionResult",
    "HubStats",
    "ImageEmbedding",
    "ImageRecord",
    "ImageTag",
    "QueryExpansionEntry",
    "QuerySignal",
    "RankedImage",
    "RankingCandidate",
    "TagScore",
]
