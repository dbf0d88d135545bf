# Path: vibefilter/config/__init__.py
# Purpose: Package initializer for configuration module.
# Layer: config.
# Details: Exposes settings models and the logging bootstrap.

from .logging import configure_logging
from .settings import (
    AppSettings,
    EmbedderSettings,
    ExpansionSettings,
    HubSettings,
    RankingSettings,
    StorageSettings,
    TaggingSettings,
)

__all__ = [
    "AppSettings",
    "EmbedderSettings",
    "ExpansionSettings",
    "HubSettings",
    "RankingSettings",
    "StorageSettings",
    "TaggingSettings",
    "configure_logging",
]
