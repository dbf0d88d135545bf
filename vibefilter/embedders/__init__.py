# Path: vibefilter/embedders/__init__.py
# Purpose: Package initializer for embedding model implementations and interfaces.
# Layer: vibefilter/embedders.
# Details: Exposes the base interface, the local and remote implementations, and a settings-driven factory.

from vibefilter.config.settings import EmbedderSettings
from vibefilter.errors import ConfigurationError

from .base import CanonicalImage, EmbeddingModel, canonicalize_image
from .clip_embedder import ClipEmbedder
from .lazy import LazyEmbedder
from .remote_embedder import RemoteEmbedder


def create_embedder(settings: EmbedderSettings) -> EmbeddingModel:
    """Build the configured embedder behind a lazy wrapper."""

    if settings.name == "clip":
        factory = lambda: ClipEmbedder(model_name=settings.model_name, dim=settings.dim)  # noqa: E731
    elif settings.name == "remote":
        if not settings.service_url:
            raise ConfigurationError("Remote embedder requires embedder.service_url.")
        factory = lambda: RemoteEmbedder(  # noqa: E731
            base_url=settings.service_url,
            api_key=settings.api_key,
            model_name=settings.model_name,
            dim=settings.dim,
            timeout_seconds=settings.timeout_seconds,
            retry_timeout_seconds=settings.retry_timeout_seconds,
        )
    else:
        raise ConfigurationError(f"Unknown embedder: {settings.name}")
    return LazyEmbedder(factory, name=settings.name, model_name=settings.model_name, dim=settings.dim)


__all__ = [
    "CanonicalImage",
    "ClipEmbedder",
    "EmbeddingModel",
    "LazyEmbedder",
    "RemoteEmbedder",
    "canonicalize_image",
    "create_embedder",
]
