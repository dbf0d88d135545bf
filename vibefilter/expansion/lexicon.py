# Path: vibefilter/expansion/lexicon.py
# Purpose: Decide which query terms are abstract and hold the curated expansion table.
# Layer: vibefilter/expansion.
# Details: Curated expansions are versioned JSON keyed by category, with "*" as the generic section.

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from vibefilter.errors import ConfigurationError

logger = logging.getLogger(__name__)

GENERIC_SECTION = "*"
DEFAULT_CURATED_PATH = Path(__file__).resolve().parent.parent / "data" / "curated_expansions.json"

ABSTRACT_PATTERNS = [
    re.compile(
        r"^(love|hate|joy|sad|happy|angry|calm|chaotic|peaceful|energetic|cozy|serious|fun|playful|"
        r"melancholic|euphoric|anxious|relaxed|tense|excited|bored)$",
        re.IGNORECASE,
    ),
    re.compile(r"^(warm|cold|bright|dark|soft|harsh|gentle|intense|mellow|vibrant|muted|bold|subtle)$", re.IGNORECASE),
    re.compile(r"^(romantic|intimate|distant|close|open|closed|free|restricted)$", re.IGNORECASE),
]


def normalize_term(term: str) -> str:
    return term.strip().lower()


def matches_abstract_pattern(term: str) -> bool:
    normalized = normalize_term(term)
    return any(pattern.match(normalized) for pattern in ABSTRACT_PATTERNS)


class CuratedExpansions:
    """Hand-reviewed expansions: ``{category: {term: [phrase, ...]}}``."""

    def __init__(self, table: Dict[str, Dict[str, List[str]]]) -> None:
        self._table: Dict[str, Dict[str, List[str]]] = {}
        for category, terms in table.items():
            section = self._table.setdefault(normalize_term(category) or GENERIC_SECTION, {})
            for term, phrases in terms.items():
                cleaned = [phrase.strip() for phrase in phrases if isinstance(phrase, str) and phrase.strip()]
                section[normalize_term(term)] = cleaned

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "CuratedExpansions":
        source = Path(path) if path is not None else DEFAULT_CURATED_PATH
        try:
            with source.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Could not load curated expansions from {source}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Curated expansions in {source} must be a JSON object.")
        logger.debug("Loaded curated expansions for %d categories from %s", len(data), source)
        return cls(data)

    def has_term(self, term: str) -> bool:
        key = normalize_term(term)
        return any(key in section for section in self._table.values())

    def lookup(self, term: str, category: str) -> List[str]:
        """Phrases for ``term``: the category section first, then generic ones not already listed."""

        key = normalize_term(term)
        phrases: List[str] = []
        for section_name in (normalize_term(category), GENERIC_SECTION):
            for phrase in self._table.get(section_name, {}).get(key, []):
                if phrase not in phrases:
                    phrases.append(phrase)
        return phrases

    def categories(self) -> List[str]:
        return sorted(self._table)
