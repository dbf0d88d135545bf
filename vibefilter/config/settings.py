# Path: vibefilter/config/settings.py
# Purpose: Provide typed configuration models for tagging, expansion, hub detection, and ranking.
# Layer: config.
# Details: Every heuristic constant of the engine lives here so there is exactly one source of truth.

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_SYNTHETIC_PROBES: List[str] = [
    "cozy ui",
    "fun website",
    "cinematic hero",
    "minimal design",
    "brutalist interface",
    "dark mode",
    "light theme",
    "colorful design",
    "monochrome",
    "gradient background",
    "bold typography",
    "geometric shapes",
    "organic shapes",
    "flat design",
    "skeuomorphic",
    "modern website",
    "retro design",
    "futuristic ui",
    "playful interface",
    "serious design",
    "elegant website",
    "bold website",
    "subtle design",
    "high contrast",
    "low contrast",
    "warm colors",
    "cool colors",
    "vibrant palette",
    "muted palette",
    "clean layout",
    "busy layout",
    "spacious design",
    "compact design",
]


class EmbedderSettings(BaseModel):
    """Settings describing which embedding model to use and how to reach it."""

    name: str = Field(default="clip", description="Identifier of the embedder implementation (clip or remote).")
    model_name: str = Field(default="clip-ViT-L/14", description="Model identifier recorded next to stored vectors.")
    dim: int = Field(default=768, gt=0, description="Fixed embedding dimensionality for the model version.")
    batch_size: int = Field(default=32, gt=0, description="Number of texts embedded per model invocation.")
    service_url: Optional[str] = Field(default=None, description="Base URL of a remote embedding service.")
    api_key: Optional[str] = Field(default=None, description="Bearer token for the remote embedding service.")
    timeout_seconds: float = Field(default=15.0, gt=0, description="Timeout for the first remote request.")
    retry_timeout_seconds: float = Field(default=20.0, gt=0, description="Timeout for the cold-start retry.")


class TaggingSettings(BaseModel):
    """Thresholds controlling how many concepts end up tagged on an image."""

    min_score: float = Field(default=0.20, description="Absolute cosine floor for a concept to be considered.")
    max_tags: int = Field(default=700, gt=0, description="Hard cap on tags per image.")
    min_score_drop_pct: float = Field(
        default=0.30, ge=0, description="Relative drop between consecutive accepted scores that stops tagging."
    )
    min_tags_floor: int = Field(default=8, ge=0, description="Tags accepted regardless of score drops.")
    fallback_k: int = Field(default=6, ge=0, description="Tags kept when no concept clears min_score.")
    prompt_template: str = Field(
        default="website UI with a {term} visual style",
        description="Sentence each concept term is phrased into before embedding.",
    )

    @model_validator(mode="after")
    def _check_floor(self) -> "TaggingSettings":
        if self.min_tags_floor > self.max_tags:
            raise ValueError("min_tags_floor must not exceed max_tags.")
        if "{term}" not in self.prompt_template:
            raise ValueError("prompt_template must contain a {term} placeholder.")
        return self


class ExpansionSettings(BaseModel):
    """Settings for abstract query expansion and score pooling."""

    default_category: str = Field(default="website", description="Category used when the caller supplies none.")
    pooling: str = Field(default="softmax", description="Pooling strategy id (max or softmax).")
    softmax_temperature: float = Field(default=0.05, gt=0, description="Temperature tau of softmax pooling.")
    curated_path: Optional[Path] = Field(
        default=None, description="JSON file of curated expansions; the packaged table is used when unset."
    )
    generator_base_url: str = Field(
        default="https://api.groq.com/openai/v1", description="OpenAI-compatible endpoint for generated expansions."
    )
    generator_api_key: Optional[str] = Field(default=None, description="API key for the generation endpoint.")
    generator_models: List[str] = Field(
        default_factory=lambda: [
            "llama-3.3-70b-versatile",
            "llama-3.1-8b-instant",
            "qwen/qwen3-32b",
        ],
        description="Models tried in order until one is not blocked.",
    )
    generator_timeout_seconds: float = Field(default=20.0, gt=0, description="Timeout of one generation call.")
    max_generated: int = Field(default=6, gt=0, description="Maximum generated expansions kept per term.")
    query_cache_size: int = Field(default=1000, gt=0, description="Entries in the in-process query embedding cache.")
    query_cache_ttl_seconds: float = Field(default=3600.0, gt=0, description="Lifetime of a cached query embedding.")


class RankingSettings(BaseModel):
    """Versioned constant set consumed by the ranking composer."""

    version: str = Field(default="2025.1", description="Name of this constant set, logged with every ranked query.")
    direct_multiplier: float = Field(default=10.0, description="Weight of summed direct tag scores.")
    zero_with_direct: float = Field(default=0.10, description="Share of base score kept next to a direct match.")
    zero_with_related: float = Field(default=0.10, description="Share of base score kept next to a related match.")
    zero_no_direct: float = Field(default=0.05, description="Share of base score kept for images without signal.")
    related_min: float = Field(default=0.20, description="Minimum related tag score that counts as a signal.")
    min_completeness: float = Field(default=0.4, description="Floor of the multi-concept completeness scale.")
    hub_reporting_floor: float = Field(default=0.05, description="Hub scores at or below this are ignored.")
    margin_penalty_factor: float = Field(default=5.0, description="Weight of the average margin in the hub penalty.")
    frequency_penalty_factor: float = Field(default=0.10, description="Weight of the hub score in the hub penalty.")
    negative_margin_scale: float = Field(
        default=0.5, description="Scale of the frequency penalty for hubs below their query averages."
    )
    hub_penalty_cap_pct: float = Field(default=0.2, ge=0, le=1, description="Cap of the penalty as share of base.")
    hub_min_multiplier: float = Field(default=0.5, description="Lowest multiplier ever applied to the base score.")
    opposite_penalty: float = Field(
        default=0.0, ge=0, description="Optional subtraction per unit of opposite tag score (0 reports only)."
    )

    @model_validator(mode="after")
    def _check_multiplier(self) -> "RankingSettings":
        if not 0 < self.hub_min_multiplier <= 1:
            raise ValueError("hub_min_multiplier must be in (0, 1].")
        return self


class HubSettings(BaseModel):
    """Parameters of the offline hub detection run."""

    top_n: int = Field(default=40, gt=0, description="Images per probe query counted as appearances.")
    threshold_multiplier: float = Field(default=1.5, gt=0, description="Multiple of the chance rate to flag a hub.")
    batch_size: int = Field(default=10, gt=0, description="Probe queries embedded per batch.")
    synthetic_probes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SYNTHETIC_PROBES),
        description="Style phrases added to the concept labels as probe queries.",
    )


class StorageSettings(BaseModel):
    """Location of the catalog database."""

    database_path: Path = Field(default=Path("storage/db/vibefilter.sqlite3"), description="SQLite catalog path.")


class AppSettings(BaseModel):
    """Top-level settings shared by the library facade, jobs, and scripts."""

    embedder: EmbedderSettings = Field(default_factory=EmbedderSettings)
    tagging: TaggingSettings = Field(default_factory=TaggingSettings)
    expansion: ExpansionSettings = Field(default_factory=ExpansionSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    hubs: HubSettings = Field(default_factory=HubSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    log_level: str = Field(default="INFO", description="Verbosity level for application logs.")

    @classmethod
    def from_env(cls) -> "AppSettings":
        """Instantiate settings, applying environment overrides when present."""

        settings = cls()
        database_path = os.environ.get("VIBEFILTER_DATABASE_PATH")
        if database_path:
            settings.storage.database_path = Path(database_path)
        log_level = os.environ.get("VIBEFILTER_LOG_LEVEL")
        if log_level:
            settings.log_level = log_level.upper()
        service_url = os.environ.get("EMBEDDING_SERVICE_URL")
        if service_url:
            settings.embedder.service_url = service_url
            settings.embedder.name = "remote"
        service_key = os.environ.get("EMBEDDING_SERVICE_API_KEY")
        if service_key:
            settings.embedder.api_key = service_key
        groq_key = os.environ.get("GROQ_API_KEY")
        if groq_key:
            settings.expansion.generator_api_key = groq_key
        return settings


__all__ = [
    "AppSettings",
    "EmbedderSettings",
    "ExpansionSettings",
    "HubSettings",
    "RankingSettings",
    "StorageSettings",
    "TaggingSettings",
    "DEFAULT_SYNTHETIC_PROBES",
]
