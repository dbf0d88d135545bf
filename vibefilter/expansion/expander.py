# Path: vibefilter/expansion/expander.py
# Purpose: Expand abstract queries into concrete visual phrases and embed them.
# Layer: vibefilter/expansion.
# Details: Curated phrases come first, then cached or freshly generated ones for the same (term, category).

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np

from vibefilter.embedders.base import EmbeddingModel
from vibefilter.models.domain import SOURCE_GENERATED, QuerySignal
from vibefilter.storage.base import ExpansionCache
from vibefilter.vectors import ensure_unit

from .cache import TTLCache
from .generator import ExpansionGenerator
from .lexicon import CuratedExpansions, matches_abstract_pattern, normalize_term

logger = logging.getLogger(__name__)


class QueryExpander:
    """Turn a user query into the list of phrases whose scores get pooled."""

    def __init__(
        self,
        curated: CuratedExpansions,
        cache: ExpansionCache,
        generator: Optional[ExpansionGenerator] = None,
        embedder: Optional[EmbeddingModel] = None,
        default_category: str = "website",
        embedding_cache: Optional[TTLCache[np.ndarray]] = None,
    ) -> None:
        self.curated = curated
        self.cache = cache
        self.generator = generator
        self.embedder = embedder
        self.default_category = default_category
        self.embedding_cache: TTLCache[np.ndarray] = embedding_cache or TTLCache()

    def is_abstract(self, query: str) -> bool:
        term = normalize_term(query)
        return bool(term) and (matches_abstract_pattern(term) or self.curated.has_term(term))

    def expand(self, query: str, category: Optional[str] = None) -> List[str]:
        """
        Return the phrases to score for ``query``.

        Concrete queries come back unchanged as a single phrase. Abstract ones get curated
        phrases plus generated phrases, calling the generator only when nothing is cached
        for the exact (term, category) pair. The literal query is the fallback when both
        sources come up empty.
        """

        literal = query.strip()
        term = normalize_term(query)
        if not term:
            return []
        if not self.is_abstract(term):
            return [literal]

        category_key = normalize_term(category or self.default_category)
        curated = self.curated.lookup(term, category_key)
        generated = self._generated_for(term, category_key)

        phrases = list(curated)
        for phrase in generated:
            if phrase not in phrases:
                phrases.append(phrase)
        logger.debug(
            "Expanded %r (%s): %d curated, %d generated", term, category_key, len(curated), len(generated)
        )
        return phrases or [literal]

    def _generated_for(self, term: str, category: str) -> List[str]:
        cached = self.cache.get_expansions(term, category, source=SOURCE_GENERATED)
        if cached:
            self.cache.touch_expansions(term, category, source=SOURCE_GENERATED)
            return [entry.expansion for entry in cached]
        if self.generator is None:
            return []

        try:
            generated = self.generator.generate(term, category)
        except Exception as exc:
            logger.warning("Expansion generation failed for %r (%s): %s", term, category, exc)
            return []
        if not generated:
            logger.info("Generator returned no expansions for %r (%s)", term, category)
            return []

        inserted = self.cache.add_expansions(
            term, category, generated, source=SOURCE_GENERATED, model=getattr(self.generator, "model", None)
        )
        logger.info("Cached %d generated expansions for %r (%s)", inserted, term, category)
        return list(generated)

    def build_signal(self, query: str, category: Optional[str] = None) -> QuerySignal:
        """Expand ``query`` and embed every phrase into a unit-row matrix."""

        if self.embedder is None:
            raise ValueError("QueryExpander.build_signal requires an embedder.")
        category_key = normalize_term(category or self.default_category)
        expansions = self.expand(query, category_key)
        vectors = self._embed_phrases(self.embedder, expansions)
        return QuerySignal(
            query=query.strip(),
            category=category_key,
            expansions=expansions,
            vectors=vectors,
            is_abstract=self.is_abstract(query),
        )

    def _embed_phrases(self, embedder: EmbeddingModel, phrases: List[str]) -> np.ndarray:
        if not phrases:
            return np.zeros((0, embedder.dim), dtype=np.float32)

        found: Dict[str, np.ndarray] = {}
        missing: List[str] = []
        for phrase in phrases:
            cached = self.embedding_cache.get((embedder.model_name, phrase))
            if cached is None:
                if phrase not in missing:
                    missing.append(phrase)
            else:
                found[phrase] = cached

        if missing:
            embedded = embedder.embed_texts(missing)
            for phrase, vector in zip(missing, embedded):
                unit = ensure_unit(vector, label=f"query embedding {phrase!r}")
                found[phrase] = unit
                self.embedding_cache.put((embedder.model_name, phrase), unit)

        return np.vstack([found[phrase] for phrase in phrases]).astype(np.float32)
