# Path: vibefilter/search/pipeline.py
# Purpose: Library facade wiring embedder, store, expander, tagger, and composer together.
# Layer: vibefilter/search.
# Details: tag_image and rank_images are the two operations callers use; both rebuild the concept graph per call.

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from vibefilter.concepts.embeddings import ConceptEmbedder
from vibefilter.concepts.graph import ConceptGraph
from vibefilter.config.settings import AppSettings
from vibefilter.embedders import create_embedder
from vibefilter.embedders.base import EmbeddingModel
from vibefilter.errors import EmbeddingError
from vibefilter.expansion.cache import TTLCache
from vibefilter.expansion.expander import QueryExpander
from vibefilter.expansion.generator import ChatCompletionGenerator, ExpansionGenerator
from vibefilter.expansion.lexicon import CuratedExpansions
from vibefilter.models.domain import RankedImage, TagScore
from vibefilter.ranking.composer import RankingComposer
from vibefilter.ranking.matching import match_query_concepts
from vibefilter.storage.base import CatalogStore
from vibefilter.storage.sqlite_store import SQLiteStore
from vibefilter.tagging.tagger import Tagger

from .pooling import get_pooling

logger = logging.getLogger(__name__)


class SearchPipeline:
    """High-level service bridging scripts and callers with the ranking and tagging engine."""

    def __init__(
        self,
        store: CatalogStore,
        embedder: EmbeddingModel,
        settings: Optional[AppSettings] = None,
        generator: Optional[ExpansionGenerator] = None,
        curated: Optional[CuratedExpansions] = None,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.settings = settings or AppSettings()
        expansion = self.settings.expansion

        self.concept_embedder = ConceptEmbedder(
            embedder,
            template=self.settings.tagging.prompt_template,
            batch_size=self.settings.embedder.batch_size,
        )
        self.tagger = Tagger(self.concept_embedder, self.settings.tagging)
        self.expander = QueryExpander(
            curated=curated or CuratedExpansions.load(expansion.curated_path),
            cache=store,
            generator=generator,
            embedder=embedder,
            default_category=expansion.default_category,
            embedding_cache=TTLCache(expansion.query_cache_size, expansion.query_cache_ttl_seconds),
        )
        self.pooling = get_pooling(expansion.pooling, expansion.softmax_temperature)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "SearchPipeline":
        """Open the configured catalog, embedder, and (when a key is set) expansion generator."""

        store = SQLiteStore(settings.storage.database_path)
        embedder = create_embedder(settings.embedder)
        generator: Optional[ExpansionGenerator] = None
        expansion = settings.expansion
        if expansion.generator_api_key:
            generator = ChatCompletionGenerator(
                api_key=expansion.generator_api_key,
                base_url=expansion.generator_base_url,
                models=expansion.generator_models,
                timeout_seconds=expansion.generator_timeout_seconds,
                max_expansions=expansion.max_generated,
            )
        else:
            logger.info("No generator API key configured; abstract queries use curated expansions only")
        return cls(store, embedder, settings=settings, generator=generator)

    def load_graph(self) -> ConceptGraph:
        return ConceptGraph(self.store.list_concepts())

    def tag_image(self, image_id: str, persist: bool = True) -> List[TagScore]:
        """
        Tag one stored image and (by default) replace its stored tag set.

        Raises EmbeddingError when the image has no stored embedding.
        """

        embeddings = self.store.load_embeddings([image_id])
        if not embeddings:
            raise EmbeddingError(f"Image {image_id} has no stored embedding.")
        tags = self.tagger.tag(embeddings[0].vector, self.load_graph())
        if persist:
            self.store.replace_tags(image_id, tags)
        logger.info("Tagged image %s with %d concepts", image_id, len(tags))
        return tags

    def rank_images(
        self,
        query: str,
        category: Optional[str] = None,
        candidate_ids: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> List[RankedImage]:
        """
        Rank stored images for ``query``.

        External calls:
        - vibefilter/expansion/expander.py::QueryExpander.build_signal - expands and embeds the query.
        - vibefilter/storage/sqlite_store.py::SQLiteStore.load_candidates - bulk-loads vectors, tags, hub stats.
        - vibefilter/ranking/composer.py::RankingComposer.rank - scores and orders the candidates.
        """

        if not query.strip():
            return []
        graph = self.load_graph()
        signal = self.expander.build_signal(query, category)
        candidates = self.store.load_candidates(candidate_ids)
        composer = RankingComposer(graph, self.settings.ranking, self.pooling)
        matched = match_query_concepts(query, graph)
        results = composer.rank(signal, candidates, matched_concept_ids=matched, limit=limit)
        logger.info(
            "Query %r (%s): %d expansions, %d matched concepts, %d results (ranking constants %s)",
            signal.query,
            signal.category,
            len(signal.expansions),
            len(matched),
            len(results),
            self.settings.ranking.version,
        )
        return results
