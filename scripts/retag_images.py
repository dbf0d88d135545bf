# Path: scripts/retag_images.py
# Purpose: CLI tool to recompute and replace the tag sets of stored images.
# Layer: scripts.
# Details: Tags every image with an embedding unless specific ids are given.

from __future__ import annotations

import argparse

from vibefilter.config import AppSettings, configure_logging
from vibefilter.indexing import retag_images
from vibefilter.search.pipeline import SearchPipeline


def main() -> None:
    parser = argparse.ArgumentParser(description="Retag stored images")
    parser.add_argument("--image-id", action="append", dest="image_ids", help="Only retag this image (repeatable)")
    parser.add_argument("--min-score", type=float, default=None, help="Override tagging.min_score")
    parser.add_argument("--max-tags", type=int, default=None, help="Override tagging.max_tags")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    if args.min_score is not None:
        settings.tagging.min_score = args.min_score
    if args.max_tags is not None:
        settings.tagging.max_tags = args.max_tags
    configure_logging(settings.log_level)

    pipeline = SearchPipeline.from_settings(settings)
    summary = retag_images(pipeline.store, pipeline.tagger, image_ids=args.image_ids)
    print(f"Tagged {summary.tagged} images ({summary.skipped} skipped)")


if __name__ == "__main__":
    main()
