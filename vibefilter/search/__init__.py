# Path: vibefilter/search/__init__.py
# Purpose: Package initializer for scoring primitives and the search facade.
# Layer: vibefilter/search.
# Details: Exposes pooling strategies and the image corpus; import SearchPipeline from .pipeline.

from .corpus import ImageCorpus
from .pooling import MaxPooling, PoolingStrategy, SoftmaxPooling, get_pooling, pool_max, pool_softmax

__all__ = [
    "ImageCorpus",
    "MaxPooling",
    "PoolingStrategy",
    "SoftmaxPooling",
    "get_pooling",
    "pool_max",
    "pool_softmax",
]
