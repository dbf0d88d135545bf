# Path: scripts/index_screenshots.py
# Purpose: CLI tool to scan screenshot folders, embed them, and optionally tag them.
# Layer: scripts.
# Details: Wires scanner, embedder, catalog store, and tagger together for ingestion.

from __future__ import annotations

import argparse
from pathlib import Path

from vibefilter.config import AppSettings, configure_logging
from vibefilter.indexing import ImageIndexer, ScreenshotScanner, retag_images
from vibefilter.search.pipeline import SearchPipeline


def main() -> None:
    """Run ingestion over a folder of screenshots."""

    parser = argparse.ArgumentParser(description="Index screenshots for vibefilter")
    parser.add_argument("--folder", type=Path, default=Path("storage/screenshots"), help="Folder containing screenshots")
    parser.add_argument("--category", default=None, help="Category recorded on every indexed image")
    parser.add_argument("--batch-size", type=int, default=8, help="Number of embeddings written per batch")
    parser.add_argument("--tag", action="store_true", help="Tag the indexed images after embedding them")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    configure_logging(settings.log_level)
    pipeline = SearchPipeline.from_settings(settings)

    files = ScreenshotScanner(args.folder, category=args.category).scan()
    indexer = ImageIndexer(pipeline.embedder, pipeline.store, batch_size=args.batch_size)
    summary = indexer.index(files)

    if args.tag and summary.stored:
        retag_images(pipeline.store, pipeline.tagger, image_ids=[item.record.id for item in files])

    print(
        f"Indexed {summary.stored} of {len(files)} screenshots "
        f"({summary.reused} reused, {summary.failed} failed) into {settings.storage.database_path}"
    )


if __name__ == "__main__":
    main()
