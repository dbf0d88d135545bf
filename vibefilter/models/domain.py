# Path: vibefilter/models/domain.py
# Purpose: Define domain models shared across tagging, hub detection, expansion, and ranking.
# Layer: vibefilter/models.
# Details: Lightweight dataclasses keep storage rows and engine results decoupled from sqlite3 tuples.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

import numpy as np

SOURCE_CURATED = "curated"
SOURCE_GENERATED = "generated"


@dataclass
class Concept:
    """Controlled-vocabulary tag with its term sets and optional stored embedding."""

    id: str
    label: str
    synonyms: FrozenSet[str] = frozenset()
    related: FrozenSet[str] = frozenset()
    opposites: FrozenSet[str] = frozenset()
    embedding: Optional[np.ndarray] = None


@dataclass
class ImageRecord:
    """Catalog entry for a stored screenshot."""

    id: str
    url: Optional[str] = None
    category: Optional[str] = None


@dataclass
class ImageEmbedding:
    """Unit-length embedding of one image, keyed by image id and content hash."""

    image_id: str
    vector: np.ndarray
    model: str
    content_hash: Optional[str] = None

    @property
    def dim(self) -> int:
        return int(self.vector.shape[0])


@dataclass(frozen=True)
class TagScore:
    """One tagger decision: a concept and its cosine score against the image."""

    concept_id: str
    score: float


@dataclass(frozen=True)
class ImageTag:
    """Persisted tag row; the set per image is exactly the last tagger output."""

    image_id: str
    concept_id: str
    score: float


@dataclass(frozen=True)
class HubStats:
    """Per-image statistics produced by one hub detection run."""

    hub_count: int
    hub_score: float
    avg_cosine_similarity: float
    avg_cosine_similarity_margin: float


@dataclass
class QueryExpansionEntry:
    """Row of the query expansion cache."""

    term: str
    category: str
    expansion: str
    source: str
    model: Optional[str] = None
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


@dataclass
class QuerySignal:
    """Expanded and embedded form of a user query."""

    query: str
    category: str
    expansions: List[str]
    vectors: np.ndarray
    is_abstract: bool = False

    @property
    def dim(self) -> int:
        return int(self.vectors.shape[1]) if self.vectors.ndim == 2 and self.vectors.size else 0


@dataclass
class RankingCandidate:
    """Bulk-loaded inputs the composer needs for one image."""

    image_id: str
    vector: Optional[np.ndarray]
    tags: List[ImageTag] = field(default_factory=list)
    hub_stats: Optional[HubStats] = None


@dataclass
class RankedImage:
    """Ranking result carrying the intermediate fields that explain its position."""

    image_id: str
    score: float
    base_score: float
    adjusted_base_score: float
    direct_matches: List[TagScore] = field(default_factory=list)
    related_matches: List[TagScore] = field(default_factory=list)
    opposite_concept_ids: List[str] = field(default_factory=list)
    hub_penalty_multiplier: float = 1.0
    hub_stats: Optional[HubStats] = None
    tag_count: int = 0

    @property
    def has_direct_match(self) -> bool:
        return bool(self.direct_matches)

    @property
    def has_opposite(self) -> bool:
        return bool(self.opposite_concept_ids)


@dataclass
class HubDetectionResult:
    """Outcome of a hub detection run before it is persisted."""

    stats: Dict[str, HubStats]
    num_queries: int
    num_images: int
    expected_hub_score: float
    hub_threshold: float
    cleared_ids: List[str] = field(default_factory=list)
