# Path: vibefilter/tagging/__init__.py
# Purpose: Package initializer for concept tagging.
# Layer: vibefilter/tagging.
# Details: Exposes the tagger and its pure selection helpers.

from .tagger import Tagger, rank_concepts, select_tags

__all__ = ["Tagger", "rank_concepts", "select_tags"]
