# Path: vibefilter/embedders/lazy.py
# Purpose: Defer construction of an expensive embedding model until first use.
# Layer: vibefilter/embedders.
# Details: Initialization runs at most once even when several threads race on the first call.

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional, Sequence

import numpy as np

from .base import CanonicalImage, EmbeddingModel

logger = logging.getLogger(__name__)


class LazyEmbedder(EmbeddingModel):
    """Wrap a factory so the model is only loaded when an embedding is requested."""

    def __init__(self, factory: Callable[[], EmbeddingModel], name: str, model_name: str, dim: int) -> None:
        self._factory = factory
        self._model: Optional[EmbeddingModel] = None
        self._lock = threading.Lock()
        self.name = name
        self.model_name = model_name
        self.dim = dim

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def get(self) -> EmbeddingModel:
        model = self._model
        if model is not None:
            return model
        with self._lock:
            if self._model is None:
                logger.info("Loading embedding model %s (%s)", self.name, self.model_name)
                self._model = self._factory()
            return self._model

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        return self.get().embed_texts(texts)

    def _embed_canonical(self, canonical: CanonicalImage) -> np.ndarray:
        return self.get()._embed_canonical(canonical)
