# Path: vibefilter/concepts/__init__.py
# Purpose: Package initializer for the concept vocabulary.
# Layer: vibefilter/concepts.
# Details: Exposes the concept graph and the concept vector builder.

from .embeddings import ConceptEmbedder, ConceptMatrix
from .graph import ConceptGraph

__all__ = ["ConceptEmbedder", "ConceptGraph", "ConceptMatrix"]
