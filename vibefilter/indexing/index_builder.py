# Path: vibefilter/indexing/index_builder.py
# Purpose: Embed scanned screenshots and store their vectors in the catalog.
# Layer: vibefilter/indexing.
# Details: Pixels are canonicalized first; an existing vector with the same content hash is reused.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
from tqdm import tqdm

from vibefilter.embedders.base import CanonicalImage, EmbeddingModel, canonicalize_image
from vibefilter.errors import EmbeddingError
from vibefilter.models.domain import ImageEmbedding, ImageRecord
from vibefilter.storage.base import CatalogStore

from .scanner import ScreenshotFile

logger = logging.getLogger(__name__)


@dataclass
class IndexingSummary:
    """Counts reported at the end of an indexing run."""

    embedded: int = 0
    reused: int = 0
    failed: int = 0

    @property
    def stored(self) -> int:
        return self.embedded + self.reused


class ImageIndexer:
    """Batch process screenshots into stored image embeddings."""

    def __init__(self, embedder: EmbeddingModel, store: CatalogStore, batch_size: int = 8) -> None:
        self.embedder = embedder
        self.store = store
        self.batch_size = batch_size

    def index(self, files: Iterable[ScreenshotFile], show_progress: bool = True) -> IndexingSummary:
        """
        Embed ``files`` and persist the results in batches.

        Calls:
        - vibefilter/embedders/base.py::canonicalize_image - hashes the decoded pixels.
        - vibefilter/storage/sqlite_store.py::SQLiteStore.find_embedding_by_hash - reuses stored vectors.
        - vibefilter/storage/sqlite_store.py::SQLiteStore.save_embeddings - writes each batch.
        """

        summary = IndexingSummary()
        records: List[ImageRecord] = []
        batch: List[ImageEmbedding] = []

        for item in tqdm(list(files), desc="Indexing screenshots", unit="img", disable=not show_progress):
            canonical = self._load(item)
            if canonical is None:
                summary.failed += 1
                continue

            vector = self.store.find_embedding_by_hash(canonical.content_hash, self.embedder.model_name)
            if vector is not None and vector.shape[0] == self.embedder.dim:
                summary.reused += 1
            else:
                try:
                    vector = self.embedder.embed_canonical(canonical)
                except EmbeddingError as exc:
                    logger.error("Could not embed %s: %s", item.path, exc)
                    summary.failed += 1
                    continue
                summary.embedded += 1

            records.append(item.record)
            batch.append(
                ImageEmbedding(
                    image_id=item.record.id,
                    vector=np.asarray(vector, dtype=np.float32),
                    model=self.embedder.model_name,
                    content_hash=canonical.content_hash,
                )
            )
            if len(batch) >= self.batch_size:
                self._flush(records, batch)
                records, batch = [], []

        if batch:
            self._flush(records, batch)

        logger.info(
            "Indexed %d screenshots (%d embedded, %d reused, %d failed)",
            summary.stored,
            summary.embedded,
            summary.reused,
            summary.failed,
        )
        return summary

    def _flush(self, records: List[ImageRecord], batch: List[ImageEmbedding]) -> None:
        self.store.upsert_images(records)
        self.store.save_embeddings(batch)

    @staticmethod
    def _load(item: ScreenshotFile) -> Optional[CanonicalImage]:
        """Read and canonicalize a screenshot, returning None if it cannot be decoded."""

        try:
            return canonicalize_image(item.path.read_bytes())
        except (OSError, EmbeddingError) as exc:
            logger.warning("Skipping unreadable screenshot %s: %s", item.path, exc)
            return None
