"""Relevance scoring of catalog records against free-text queries."""

from __future__ import annotations

import unicodedata
from typing import List

from core.catalog.models import NFTRecord

EXACT_NAME_WEIGHT = 3.0
NAME_CONTAINS_QUERY = 2.0
QUERY_CONTAINS_NAME = 1.0
DESC_CONTAINS_QUERY = 1.0
QUERY_CONTAINS_DESC = 0.5


def normalize_text(text: str) -> str:
    """Lower-case ``text`` and strip diacritics (``"Café"`` -> ``"cafe"``)."""

    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def tokenize(text: str) -> List[str]:
    return text.split()


def _pair_score(query_tokens: List[str], tokens: List[str], forward: float, backward: float) -> float:
    total = 0.0
    for q in query_tokens:
        for tok in tokens:
            if q in tok:
                total += forward
            if tok in q:
                total += backward
    return total


def score(query: str, record: NFTRecord) -> float:
    """Return the relevance of ``record`` for ``query``; 0 for a blank query."""

    norm_query = normalize_text(query).strip()
    if not norm_query:
        return 0.0
    norm_name = normalize_text(record.name)
    query_tokens = tokenize(norm_query)

    total = EXACT_NAME_WEIGHT if norm_query in norm_name else 0.0
    total += _pair_score(query_tokens, tokenize(norm_name), NAME_CONTAINS_QUERY, QUERY_CONTAINS_NAME)
    total += _pair_score(
        query_tokens,
        tokenize(normalize_text(record.description)),
        DESC_CONTAINS_QUERY,
        QUERY_CONTAINS_DESC,
    )
    return total
