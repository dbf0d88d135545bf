# Path: vibefilter/storage/base.py
# Purpose: Describe the persistence capabilities the engine depends on.
# Layer: vibefilter/storage.
# Details: Structural protocols so tests and alternative backends can stand in for SQLite.

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import numpy as np

from vibefilter.models.domain import (
    Concept,
    HubStats,
    ImageEmbedding,
    ImageRecord,
    ImageTag,
    QueryExpansionEntry,
    RankingCandidate,
    TagScore,
)


class ExpansionCache(Protocol):
    """Persistent cache of generated query expansions keyed by (term, category)."""

    def get_expansions(self, term: str, category: str, source: str) -> List[QueryExpansionEntry]:
        ...

    def add_expansions(
        self, term: str, category: str, expansions: Sequence[str], source: str, model: Optional[str] = None
    ) -> int:
        """Insert rows, ignoring duplicates; returns the number of new rows."""
        ...

    def touch_expansions(self, term: str, category: str, source: str) -> None:
        ...


class CatalogStore(ExpansionCache, Protocol):
    """Concepts, images, embeddings, tags, and hub statistics."""

    def upsert_concepts(self, concepts: Iterable[Concept]) -> int:
        ...

    def list_concepts(self) -> List[Concept]:
        ...

    def set_concept_embeddings(self, vectors: Mapping[str, np.ndarray]) -> None:
        ...

    def upsert_images(self, records: Iterable[ImageRecord]) -> int:
        ...

    def list_images(self, ids: Optional[Sequence[str]] = None) -> List[ImageRecord]:
        ...

    def save_embeddings(self, embeddings: Iterable[ImageEmbedding]) -> int:
        ...

    def load_embeddings(self, ids: Optional[Sequence[str]] = None) -> List[ImageEmbedding]:
        ...

    def find_embedding_by_hash(self, content_hash: str, model: str) -> Optional[np.ndarray]:
        ...

    def replace_tags(self, image_id: str, tags: Sequence[TagScore]) -> None:
        ...

    def load_tags(self, ids: Optional[Sequence[str]] = None) -> Dict[str, List[ImageTag]]:
        ...

    def save_hub_stats(
        self, stats: Mapping[str, HubStats], clear: bool = False, cleared_ids: Sequence[str] = ()
    ) -> None:
        ...

    def load_hub_stats(self, ids: Optional[Sequence[str]] = None) -> Dict[str, HubStats]:
        ...

    def load_candidates(self, ids: Optional[Sequence[str]] = None) -> List[RankingCandidate]:
        ...
