# Path: scripts/search_preview.py
# Purpose: CLI tool to preview the ranking for a query and explain each position.
# Layer: scripts.
# Details: Prints score components so tuning of the ranking constants can be checked by eye.

from __future__ import annotations

import argparse

from vibefilter.config import AppSettings, configure_logging
from vibefilter.search.pipeline import SearchPipeline


def main() -> None:
    """Run a query against the catalog and print the top results."""

    parser = argparse.ArgumentParser(description="Preview vibefilter rankings")
    parser.add_argument("query", help="Free-text query")
    parser.add_argument("--category", default=None, help="Category used for query expansion")
    parser.add_argument("--limit", type=int, default=10, help="Number of results to show")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    configure_logging(settings.log_level)
    pipeline = SearchPipeline.from_settings(settings)

    print(f"Expansions: {pipeline.expander.expand(args.query, args.category)}")
    results = pipeline.rank_images(args.query, category=args.category, limit=args.limit)
    for position, result in enumerate(results, start=1):
        direct = ", ".join(f"{tag.concept_id}={tag.score:.2f}" for tag in result.direct_matches) or "-"
        opposite = ", ".join(result.opposite_concept_ids) or "-"
        print(
            f"{position:>3}. {result.image_id} score={result.score:.4f} base={result.base_score:.4f} "
            f"hub x{result.hub_penalty_multiplier:.2f} direct=[{direct}] opposites=[{opposite}]"
        )


if __name__ == "__main__":
    main()
