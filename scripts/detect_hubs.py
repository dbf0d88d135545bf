# Path: scripts/detect_hubs.py
# Purpose: CLI tool to run hub detection over the stored corpus and persist the statistics.
# Layer: scripts.
# Details: Full runs can clear previous stats; --image-id restricts updates to specific images.

from __future__ import annotations

import argparse

from vibefilter.config import AppSettings, configure_logging
from vibefilter.hubs import HubDetector
from vibefilter.indexing import run_hub_detection
from vibefilter.search.pipeline import SearchPipeline


def main() -> None:
    parser = argparse.ArgumentParser(description="Detect hub images")
    parser.add_argument("--top-n", type=int, default=None, help="Images per probe counted as appearances")
    parser.add_argument("--threshold-multiplier", type=float, default=None, help="Multiple of the chance rate")
    parser.add_argument("--clear", action="store_true", help="Null all existing hub stats before writing")
    parser.add_argument("--image-id", action="append", dest="image_ids", help="Only update this image (repeatable)")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    if args.top_n is not None:
        settings.hubs.top_n = args.top_n
    if args.threshold_multiplier is not None:
        settings.hubs.threshold_multiplier = args.threshold_multiplier
    configure_logging(settings.log_level)

    pipeline = SearchPipeline.from_settings(settings)
    detector = HubDetector(pipeline.embedder, settings.hubs, show_progress=True)
    result = run_hub_detection(
        pipeline.store, detector, settings.hubs, clear=args.clear, target_ids=args.image_ids
    )

    print(
        f"{len(result.stats)} hubs over {result.num_images} images and {result.num_queries} probes "
        f"(expected {result.expected_hub_score:.4f}, threshold {result.hub_threshold:.4f})"
    )
    top = sorted(result.stats.items(), key=lambda item: -item[1].hub_score)[:10]
    for image_id, stats in top:
        print(
            f"  {image_id}: score={stats.hub_score:.3f} count={stats.hub_count} "
            f"avg={stats.avg_cosine_similarity:.3f} margin={stats.avg_cosine_similarity_margin:+.4f}"
        )


if __name__ == "__main__":
    main()
