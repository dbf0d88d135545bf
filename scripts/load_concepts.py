# Path: scripts/load_concepts.py
# Purpose: CLI tool to import the concept vocabulary from JSON and refresh concept embeddings.
# Layer: scripts.
# Details: Expects a list of {id, label, synonyms, related, opposites} objects.

from __future__ import annotations

import argparse
import json
from pathlib import Path

from vibefilter.config import AppSettings, configure_logging
from vibefilter.indexing import refresh_concept_embeddings
from vibefilter.models import Concept
from vibefilter.search.pipeline import SearchPipeline


def main() -> None:
    parser = argparse.ArgumentParser(description="Load concepts into the vibefilter catalog")
    parser.add_argument("path", type=Path, help="JSON file with the concept list")
    parser.add_argument("--skip-embeddings", action="store_true", help="Do not recompute stored concept embeddings")
    args = parser.parse_args()

    settings = AppSettings.from_env()
    configure_logging(settings.log_level)
    pipeline = SearchPipeline.from_settings(settings)

    payload = json.loads(args.path.read_text(encoding="utf-8"))
    concepts = [
        Concept(
            id=str(item["id"]),
            label=str(item.get("label") or item["id"]),
            synonyms=frozenset(item.get("synonyms", [])),
            related=frozenset(item.get("related", [])),
            opposites=frozenset(item.get("opposites", [])),
        )
        for item in payload
    ]
    count = pipeline.store.upsert_concepts(concepts)
    if not args.skip_embeddings:
        refresh_concept_embeddings(pipeline.store, pipeline.concept_embedder)
    print(f"Loaded {count} concepts from {args.path}")


if __name__ == "__main__":
    main()
