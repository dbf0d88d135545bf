# Path: vibefilter/ranking/__init__.py
# Purpose: Package initializer for ranking composition.
# Layer: vibefilter/ranking.
# Details: Exposes the composer, the hub multiplier, and query-to-concept matching.

from .composer import RankingComposer, compute_hub_multiplier
from .matching import match_query_concepts, query_terms

__all__ = ["RankingComposer", "compute_hub_multiplier", "match_query_concepts", "query_terms"]
