"""Relevance scoring between query tokens and a bookmark's tokens.

Pure functions; both token collections must be bounded by the caller since
scoring is O(len(query_tokens) * len(record_tokens)).
"""
from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TypeVar

T = TypeVar("T")

EXACT_MATCH_POINTS = 10
PREFIX_MATCH_POINTS = 5
PARTIAL_MATCH_POINTS = 1


def score(query_tokens: Iterable[str], record_tokens: Iterable[str]) -> int:
    """Sum pairwise overlap points between two token collections.

    For every (query, record) pair where one token contains the other:
    10 for an exact match, 5 when one is a prefix of the other, 1 otherwise.
    """
    record = list(record_tokens)
    total = 0
    if not record:
        return total

    for q in query_tokens:
        for r in record:
            if q not in r and r not in q:
                continue
            if q == r:
                total += EXACT_MATCH_POINTS
            elif r.startswith(q) or q.startswith(r):
                total += PREFIX_MATCH_POINTS
            else:
                total += PARTIAL_MATCH_POINTS
    return total


def rank(items: Iterable[T], key: Callable[[T], int]) -> list[T]:
    """Stable sort by score, highest first."""
    return sorted(items, key=key, reverse=True)
