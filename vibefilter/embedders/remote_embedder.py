# Path: vibefilter/embedders/remote_embedder.py
# Purpose: Embed texts and images through an external HTTP embedding service.
# Layer: vibefilter/embedders.
# Details: Speaks the /embed/text and /embed/image JSON contract and retries once on cold starts.

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Dict, Optional, Sequence

import numpy as np
import requests

from vibefilter.errors import DimensionMismatchError, EmbeddingError
from vibefilter.vectors import ensure_unit

from .base import CanonicalImage, EmbeddingModel

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {502, 503}


class RemoteEmbedder(EmbeddingModel):
    """Client for a CLIP embedding service deployed next to the catalog."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        model_name: str = "clip-ViT-L/14",
        dim: int = 768,
        timeout_seconds: float = 15.0,
        retry_timeout_seconds: float = 20.0,
        retry_delay_seconds: float = 2.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model_name = model_name
        self.dim = dim
        self.name = "remote"
        self.timeout_seconds = timeout_seconds
        self.retry_timeout_seconds = retry_timeout_seconds
        self.retry_delay_seconds = retry_delay_seconds
        self._session = session or requests.Session()

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """POST texts to ``/embed/text`` and return unit-length rows."""

        if len(texts) == 0:
            return np.zeros((0, self.dim), dtype=np.float32)
        payload = self._post("/embed/text", {"texts": [str(text) for text in texts]})
        rows = payload.get("embeddings")
        if not isinstance(rows, list) or len(rows) != len(texts):
            raise EmbeddingError("Embedding service returned an invalid embeddings list.")
        return np.vstack([self._check_row(row, "text") for row in rows])

    def _embed_canonical(self, canonical: CanonicalImage) -> np.ndarray:
        encoded = base64.b64encode(canonical.png).decode("ascii")
        payload = self._post("/embed/image", {"image": encoded})
        row = payload.get("embedding")
        if not isinstance(row, list):
            raise EmbeddingError("Embedding service returned no image embedding.")
        return self._check_row(row, "image")

    def _check_row(self, row: Sequence[float], kind: str) -> np.ndarray:
        vector = np.asarray(row, dtype=np.float32)
        if vector.shape[0] != self.dim:
            raise DimensionMismatchError(self.dim, int(vector.shape[0]), f"{kind} embedding from service")
        return ensure_unit(vector, label=f"{kind} embedding")

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """Send one request with a single retry for timeouts and 502/503 responses."""

        url = f"{self.base_url}{path}"
        last_error: Optional[Exception] = None
        for attempt, timeout in enumerate((self.timeout_seconds, self.retry_timeout_seconds)):
            if attempt > 0:
                logger.info("Retrying %s after %.1fs (attempt %d)", url, self.retry_delay_seconds, attempt + 1)
                time.sleep(self.retry_delay_seconds)
            try:
                response = self._session.post(url, json=body, headers=self._headers(), timeout=timeout)
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
                last_error = exc
                logger.warning("Embedding service request to %s failed: %s", url, exc)
                continue

            if response.status_code in RETRYABLE_STATUS:
                last_error = EmbeddingError(f"Embedding service returned {response.status_code}")
                logger.warning("Embedding service returned %s (likely cold start)", response.status_code)
                continue
            if not response.ok:
                raise EmbeddingError(f"Embedding service returned {response.status_code}: {response.text[:200]}")
            try:
                return response.json()
            except ValueError as exc:
                raise EmbeddingError("Embedding service returned malformed JSON.") from exc

        raise EmbeddingError(f"Embedding service at {self.base_url} unavailable: {last_error}")
