"""Tokenizer for the blind search index.

Two pure entry points turn free text into plaintext token sets:

- ``index_tokens`` runs once per bookmark and is deliberately narrow so the
  number of index rows per record stays bounded.
- ``query_tokens`` runs once per search and is broad (every prefix, every
  short character n-gram) so partially typed queries still hit tokens that
  the narrow indexing rules produced.

Tokens are hashed by the caller before they reach the store; nothing in this
module performs I/O or cryptography.
"""
from __future__ import annotations

from collections.abc import Iterable

MAX_INDEX_WORDS = 100
MAX_PHRASE_LENGTH = 100
MIN_WORD_LENGTH = 2
MAX_WORD_LENGTH = 50
PREFIX_MIN_WORD_LENGTH = 5
MAX_PREFIX_LENGTH = 6
WORD_NGRAM_WINDOW_WORDS = 25
MAX_WORD_NGRAM = 3
MAX_WORD_NGRAM_LENGTH = 50
MIN_CHAR_NGRAM = 2
MAX_CHAR_NGRAM = 8
MAX_QUERY_LENGTH = 100


def normalize(text: str | None) -> str:
    """Lowercase, strip and collapse runs of whitespace to one space."""
    if not text:
        return ""
    return " ".join(text.lower().split())


def normalize_query(text: str | None) -> str:
    """Normalize a query and cut it to ``MAX_QUERY_LENGTH`` characters."""
    return normalize(text)[:MAX_QUERY_LENGTH].rstrip()


def index_tokens(text: str | None) -> set[str]:
    """Generate the token set stored in the index for a piece of text.

    Produces, in order:
    1. The whole normalized text as a phrase token (when short enough).
    2. Each word of 2-50 chars, plus prefixes of length 2..min(len-1, 6)
       for words of 5+ chars.
    3. Word windows of 1-3 consecutive words starting within the first 25
       words, when the joined window fits in 50 chars.
    4. Domain parts, split on ``.`` and ``-``, when the text contains a dot.
    """
    normalized = normalize(text)
    if not normalized:
        return set()

    tokens: set[str] = set()
    words = normalized.split()[:MAX_INDEX_WORDS]

    if len(normalized) <= MAX_PHRASE_LENGTH:
        tokens.add(normalized)

    for word in words:
        if not MIN_WORD_LENGTH <= len(word) <= MAX_WORD_LENGTH:
            continue
        tokens.add(word)
        if len(word) >= PREFIX_MIN_WORD_LENGTH:
            for end in range(MIN_WORD_LENGTH, min(len(word) - 1, MAX_PREFIX_LENGTH) + 1):
                tokens.add(word[:end])

    for start in range(min(len(words), WORD_NGRAM_WINDOW_WORDS)):
        for end in range(start + 1, min(start + MAX_WORD_NGRAM, len(words)) + 1):
            phrase = " ".join(words[start:end])
            if len(phrase) <= MAX_WORD_NGRAM_LENGTH:
                tokens.add(phrase)

    if "." in normalized:
        for part in _split_domain(normalized):
            if MIN_WORD_LENGTH <= len(part) <= MAX_WORD_LENGTH:
                tokens.add(part)

    return tokens


def query_tokens(text: str | None) -> set[str]:
    """Generate the token set for a search query.

    Broader than ``index_tokens``: the full query, every word, every prefix
    of every word and every 2-8 character n-gram of the normalized query.
    The query is cut to ``MAX_QUERY_LENGTH`` characters first, which bounds
    the token count for the scorer.
    """
    normalized = normalize_query(text)
    if not normalized:
        return set()

    tokens = {normalized}

    for word in normalized.split():
        for end in range(1, len(word) + 1):
            tokens.add(word[:end])

    for start in range(len(normalized)):
        for size in range(MIN_CHAR_NGRAM, MAX_CHAR_NGRAM + 1):
            end = start + size
            if end > len(normalized):
                break
            tokens.add(normalized[start:end])

    return tokens


def select_lookup_tokens(text: str | None, tokens: Iterable[str], limit: int) -> list[str]:
    """Pick at most ``limit`` tokens to look up in the index.

    Priority tiers: the exact phrase, whole words, word prefixes (2+ chars),
    then everything else. Inside a tier longer tokens win, ties broken
    lexicographically, so the selection is stable for a given query.
    """
    if limit <= 0:
        return []

    normalized = normalize_query(text)
    words = set(normalized.split())

    def tier(token: str) -> int:
        if token == normalized:
            return 0
        if token in words:
            return 1
        if len(token) >= MIN_WORD_LENGTH and any(w.startswith(token) for w in words):
            return 2
        return 3

    ordered = sorted(set(tokens), key=lambda t: (tier(t), -len(t), t))
    return ordered[:limit]


def _split_domain(text: str) -> list[str]:
    parts = text.replace("-", ".").split(".")
    return [part.strip() for part in parts if part.strip()]
