"""
Term Extraction

Lowercased word terms longer than three characters, used to label themes
and explain link suggestions.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

_WORD_RE = re.compile(r"[^\w\s]", re.UNICODE)
MIN_TERM_LENGTH = 4


def extract_terms(text: str) -> Counter[str]:
    """Term frequencies of a text."""
    tokens = _WORD_RE.sub(" ", text.lower()).split()
    return Counter(t for t in tokens if len(t) >= MIN_TERM_LENGTH)


def common_keywords(source: str, target: str, limit: int = 5) -> list[str]:
    """Terms present in both texts, by combined frequency."""
    a, b = extract_terms(source), extract_terms(target)
    shared = {term: a[term] + b[term] for term in a.keys() & b.keys()}
    ranked = sorted(shared.items(), key=lambda item: (-item[1], item[0]))
    return [term for term, _ in ranked[:limit]]


def top_terms(texts: Iterable[str], limit: int = 5) -> list[str]:
    """Most frequent terms across texts, ties broken alphabetically."""
    totals: Counter[str] = Counter()
    for text in texts:
        totals.update(extract_terms(text))
    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [term for term, _ in ranked[:limit]]
