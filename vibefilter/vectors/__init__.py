# Path: vibefilter/vectors/__init__.py
# Purpose: Package initializer for vector math helpers.
# Layer: vibefilter/vectors.
# Details: Exposes cosine, mean, and normalization functions.

from .ops import cosine, cosine_many, ensure_unit, is_unit, l2_normalize, mean

__all__ = ["cosine", "cosine_many", "ensure_unit", "is_unit", "l2_normalize", "mean"]
