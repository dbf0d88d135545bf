# Path: vibefilter/ranking/matching.py
# Purpose: Work out which vocabulary concepts a query names literally.
# Layer: vibefilter/ranking.
# Details: Case-insensitive exact matching of the whole query and of its tokens.

from __future__ import annotations

import re
from typing import List

from vibefilter.concepts.graph import ConceptGraph

TOKEN_SPLIT = re.compile(r"[\s,+]+")


def query_terms(query: str) -> List[str]:
    """The normalized query followed by its tokens, without repeats."""

    normalized = query.strip().lower()
    if not normalized:
        return []
    terms = [normalized]
    for token in TOKEN_SPLIT.split(normalized):
        if token and token not in terms:
            terms.append(token)
    return terms


def match_query_concepts(query: str, graph: ConceptGraph) -> List[str]:
    """Ids of concepts whose id, label, or synonym equals the query or one of its tokens."""

    matched: List[str] = []
    for term in query_terms(query):
        for concept_id in graph.match_term(term):
            if concept_id not in matched:
                matched.append(concept_id)
    return matched
