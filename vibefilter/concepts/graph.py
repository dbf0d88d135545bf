# Path: vibefilter/concepts/graph.py
# Purpose: Hold the controlled vocabulary and answer lookup and relation queries over it.
# Layer: vibefilter/concepts.
# Details: Immutable snapshot built once per request or batch run from stored concepts.

from __future__ import annotations

import hashlib
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from vibefilter.models.domain import Concept

logger = logging.getLogger(__name__)


def _norm(term: str) -> str:
    return term.strip().lower()


class ConceptGraph:
    """Read-only view of the concept vocabulary.

    Opposite relations are read in both directions: ``a`` and ``b`` are opposites when
    either lists the other. Stored lists are never rewritten to make them symmetric.
    """

    def __init__(self, concepts: Iterable[Concept]) -> None:
        self._concepts: Dict[str, Concept] = {}
        self._by_term: Dict[str, List[str]] = {}

        for concept in concepts:
            cleaned = self._drop_self_references(concept)
            if cleaned.id in self._concepts:
                logger.warning("Duplicate concept id %s; keeping the last definition", cleaned.id)
            self._concepts[cleaned.id] = cleaned

        for concept_id in sorted(self._concepts):
            concept = self._concepts[concept_id]
            for term in {concept.id, concept.label, *concept.synonyms}:
                key = _norm(term)
                if key and concept_id not in self._by_term.setdefault(key, []):
                    self._by_term[key].append(concept_id)

        self._fingerprint: Optional[str] = None

    @staticmethod
    def _drop_self_references(concept: Concept) -> Concept:
        lists = {"synonyms": concept.synonyms, "related": concept.related, "opposites": concept.opposites}
        dirty = [name for name, values in lists.items() if concept.id in values]
        if not dirty:
            return concept
        logger.warning("Concept %s references itself in %s; dropping", concept.id, ", ".join(dirty))
        return Concept(
            id=concept.id,
            label=concept.label,
            synonyms=frozenset(concept.synonyms - {concept.id}),
            related=frozenset(concept.related - {concept.id}),
            opposites=frozenset(concept.opposites - {concept.id}),
            embedding=concept.embedding,
        )

    def __len__(self) -> int:
        return len(self._concepts)

    def __contains__(self, concept_id: object) -> bool:
        return concept_id in self._concepts

    def concepts(self) -> List[Concept]:
        """Concepts ordered by id."""

        return [self._concepts[concept_id] for concept_id in sorted(self._concepts)]

    def get(self, concept_id: str) -> Optional[Concept]:
        return self._concepts.get(concept_id)

    def find(self, term: str) -> Optional[Concept]:
        """Return the first concept whose label or synonym equals ``term`` (case-insensitive)."""

        key = _norm(term)
        for concept_id in self._by_term.get(key, []):
            concept = self._concepts[concept_id]
            if _norm(concept.label) == key or key in {_norm(s) for s in concept.synonyms}:
                return concept
        return None

    def match_term(self, term: str) -> List[str]:
        """Return ids of every concept whose id, label, or synonym equals ``term``."""

        return list(self._by_term.get(_norm(term), []))

    def expanded_terms(self, concept_id: str) -> Set[str]:
        """Label, synonyms, and related terms of a concept, lowercased."""

        concept = self._concepts.get(concept_id)
        if concept is None:
            return set()
        terms = {concept.label, *concept.synonyms, *concept.related}
        return {_norm(term) for term in terms if _norm(term)}

    def are_opposites(self, a: str, b: str) -> bool:
        first = self._concepts.get(a)
        second = self._concepts.get(b)
        return bool((first is not None and b in first.opposites) or (second is not None and a in second.opposites))

    def opposites_of(self, concept_id: str) -> FrozenSet[str]:
        """Every concept that is an opposite of ``concept_id`` in either direction."""

        found: Set[str] = set()
        concept = self._concepts.get(concept_id)
        if concept is not None:
            found.update(concept.opposites)
        for other in self._concepts.values():
            if concept_id in other.opposites:
                found.add(other.id)
        found.discard(concept_id)
        return frozenset(found)

    @property
    def fingerprint(self) -> str:
        """Stable digest of ids, labels, and synonyms; changes whenever tagging vectors would."""

        if self._fingerprint is None:
            digest = hashlib.sha256()
            for concept in self.concepts():
                digest.update(concept.id.encode("utf-8"))
                digest.update(b"\x00")
                digest.update(concept.label.encode("utf-8"))
                for synonym in sorted(concept.synonyms):
                    digest.update(b"\x01")
                    digest.update(synonym.encode("utf-8"))
                digest.update(b"\x02")
            self._fingerprint = digest.hexdigest()
        return self._fingerprint
