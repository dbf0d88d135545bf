# Path: vibefilter/expansion/__init__.py
# Purpose: Package initializer for query expansion.
# Layer: vibefilter/expansion.
# Details: Exposes the expander, the curated lexicon, and the generation client.

from .cache import TTLCache
from .expander import QueryExpander
from .generator import ChatCompletionGenerator, ExpansionGenerator, parse_expansions
from .lexicon import CuratedExpansions, matches_abstract_pattern, normalize_term

__all__ = [
    "ChatCompletionGenerator",
    "CuratedExpansions",
    "ExpansionGenerator",
    "QueryExpander",
    "TTLCache",
    "matches_abstract_pattern",
    "normalize_term",
    "parse_expansions",
]
