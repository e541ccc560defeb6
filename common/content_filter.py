"""Masking of inappropriate words in user-written chat text."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

INAPPROPRIATE_WORDS = (
    "idiot",
    "moron",
    "bastard",
    "debil",
    "blbec",
    "hajzl",
    "kokot",
    "zmrd",
)


@dataclass
class FilterResult:
    original_text: str
    filtered_text: str
    filtered_words: List[str] = field(default_factory=list)

    @property
    def was_filtered(self) -> bool:
        return bool(self.filtered_words)


def filter_inappropriate_content(text: str, words: Iterable[str] = INAPPROPRIATE_WORDS) -> FilterResult:
    """Replace every listed word (whole word, any case) by asterisks of equal length."""

    filtered = text
    hits: List[str] = []
    for word in words:
        pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
        if pattern.search(filtered):
            hits.append(word)
            filtered = pattern.sub("*" * len(word), filtered)
    return FilterResult(original_text=text, filtered_text=filtered, filtered_words=hits)


def log_inappropriate_content(
    result: FilterResult, user_id: int, context_type: str, context_id: Optional[int] = None
) -> None:
    if not result.was_filtered:
        return
    logger.warning(
        "Inappropriate content from user=%s in %s %s: words=%s",
        user_id,
        context_type,
        context_id if context_id is not None else "-",
        ",".join(result.filtered_words),
    )
