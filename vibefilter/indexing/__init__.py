# Path: vibefilter/indexing/__init__.py
# Purpose: Package initializer for ingestion and offline jobs.
# Layer: vibefilter/indexing.
# Details: Exposes the scanner, the indexer, and the retag, hub, and concept refresh jobs.

from .index_builder import ImageIndexer, IndexingSummary
from .jobs import RetagSummary, refresh_concept_embeddings, retag_images, run_hub_detection
from .scanner import ScreenshotFile, ScreenshotScanner

__all__ = [
    "ImageIndexer",
    "IndexingSummary",
    "RetagSummary",
    "ScreenshotFile",
    "ScreenshotScanner",
    "refresh_concept_embeddings",
    "retag_images",
    "run_hub_detection",
]
