"""Typo-tolerant item search over title, category and description."""
from __future__ import annotations

import unicodedata
from typing import Iterable, List, Optional, Tuple

from rapidfuzz import fuzz

from .models import Item

MIN_QUERY_LENGTH = 2
DEFAULT_MIN_SCORE = 70

# Title hits outrank category hits, which outrank description hits.
FIELD_WEIGHTS = (("title", 0.5), ("category", 0.3), ("description", 0.2))


def fold(text: Optional[str]) -> str:
    """Lower-case and strip diacritics so "Kóló" matches "kolo"."""

    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def _fields(item: Item) -> dict[str, str]:
    return {
        "title": fold(item.title),
        "category": fold(item.category.name if item.category else ""),
        "description": fold(item.description),
    }


def relevance(item: Item, folded_query: str, min_score: int = DEFAULT_MIN_SCORE) -> Optional[float]:
    """Best weighted field score, or ``None`` when no field is close enough.

    Each field is scored with ``partial_ratio``, so an exact substring scores
    100 and a query one or two edits away from some part of the field still
    scores high.
    """

    fields = _fields(item)
    best: Optional[float] = None
    for name, weight in FIELD_WEIGHTS:
        score = fuzz.partial_ratio(folded_query, fields[name])
        if score >= min_score:
            weighted = score * weight
            best = weighted if best is None else max(best, weighted)
    return best


def search_items(items: Iterable[Item], query: str, min_score: int = DEFAULT_MIN_SCORE) -> List[Item]:
    """Filter ``items`` by ``query`` and order them by relevance.

    Equally relevant items keep their incoming order.
    """

    folded = fold(query.strip())
    if len(folded) < MIN_QUERY_LENGTH:
        return list(items)

    scored: List[Tuple[float, int, Item]] = []
    for position, item in enumerate(items):
        score = relevance(item, folded, min_score)
        if score is not None:
            scored.append((score, position, item))
    scored.sort(key=lambda entry: (-entry[0], entry[1]))
    return [item for _, _, item in scored]
