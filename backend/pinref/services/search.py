"""Search service — ranked keyword search over the blind index."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from pinref.models.bookmark import BookmarkRead
from pinref.services.bookmark_store import BookmarkStore
from pinref.services.index_store import SearchIndexStore
from pinref.services.scoring import rank, score
from pinref.services.tokenizer import index_tokens, query_tokens, select_lookup_tokens
from pinref.utils.concurrency import gather_bounded

logger = logging.getLogger(__name__)

DEFAULT_RESULT_LIMIT = 100
DEFAULT_MAX_LOOKUP_TOKENS = 6
DEFAULT_FETCH_CONCURRENCY = 10


@dataclass(frozen=True, slots=True)
class SearchHit:
    """A single search result with score info."""
    bookmark: BookmarkRead
    score: int           # fine-grained token overlap score
    matched_tokens: int  # how many lookup tokens returned this bookmark


@dataclass(frozen=True, slots=True)
class SearchResult:
    """Container for search results."""
    hits: list[SearchHit]
    total_candidates: int  # distinct bookmarks any lookup token returned
    query_tokens_generated: int
    lookup_tokens: int


class SearchService:
    """Keyword search over encrypted bookmarks using the blind index."""

    __slots__ = (
        "index_store",
        "bookmark_store",
        "token_hasher",
        "max_lookup_tokens",
        "fetch_concurrency",
    )

    def __init__(
        self,
        index_store: SearchIndexStore,
        bookmark_store: BookmarkStore,
        token_hasher: Callable[[str], str],
        max_lookup_tokens: int = DEFAULT_MAX_LOOKUP_TOKENS,
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
    ) -> None:
        self.index_store = index_store
        self.bookmark_store = bookmark_store
        self.token_hasher = token_hasher
        self.max_lookup_tokens = max_lookup_tokens
        self.fetch_concurrency = fetch_concurrency

    async def search(
        self,
        owner_id: str,
        query: str,
        result_limit: int = DEFAULT_RESULT_LIMIT,
    ) -> SearchResult:
        """Execute a ranked search query.

        1. Generate query tokens and pick a bounded set to look up.
        2. Look up each hashed token; coordinate score = number of distinct
           lookup tokens that returned a bookmark.
        3. Keep the best ``result_limit`` candidates by coordinate score.
        4. Fetch and decrypt those bookmarks.
        5. Re-rank by token overlap score against all query tokens.

        Returns an empty result when nothing matches. Store failures raise
        IndexStoreError instead.
        """
        tokens = query_tokens(query)
        if not tokens or result_limit <= 0:
            return SearchResult(
                hits=[], total_candidates=0, query_tokens_generated=len(tokens), lookup_tokens=0
            )

        lookup = select_lookup_tokens(query, tokens, self.max_lookup_tokens)
        coordinate = await self._coordinate_scores(owner_id, lookup)
        if not coordinate:
            return SearchResult(
                hits=[],
                total_candidates=0,
                query_tokens_generated=len(tokens),
                lookup_tokens=len(lookup),
            )

        candidates = rank(coordinate, key=lambda rid: coordinate[rid])[:result_limit]
        bookmarks = await self._hydrate(owner_id, candidates)

        hits = [
            SearchHit(
                bookmark=bookmark,
                score=score(tokens, index_tokens(bookmark.searchable_text())),
                matched_tokens=coordinate[bookmark.id],
            )
            for bookmark in bookmarks
        ]

        return SearchResult(
            hits=rank(hits, key=lambda h: h.score),
            total_candidates=len(coordinate),
            query_tokens_generated=len(tokens),
            lookup_tokens=len(lookup),
        )

    async def _coordinate_scores(self, owner_id: str, lookup: list[str]) -> dict[str, int]:
        """Map record id to the number of lookup tokens that returned it.

        Insertion order follows lookup order, so ties rank by first match.
        """
        async def lookup_one(token: str) -> set[str]:
            return set(await self.index_store.query_token(owner_id, self.token_hasher(token)))

        per_token = await gather_bounded(lookup, lookup_one, self.fetch_concurrency)

        counts: dict[str, int] = {}
        for record_ids in per_token:
            for record_id in sorted(record_ids):
                counts[record_id] = counts.get(record_id, 0) + 1
        return counts

    async def _hydrate(self, owner_id: str, record_ids: list[str]) -> list[BookmarkRead]:
        """Fetch bookmarks in bounded parallel batches, dropping stale ids."""
        async def fetch(record_id: str) -> BookmarkRead | None:
            return await self.bookmark_store.get(record_id, owner_id=owner_id)

        fetched = await gather_bounded(record_ids, fetch, self.fetch_concurrency)

        bookmarks: list[BookmarkRead] = []
        for record_id, bookmark in zip(record_ids, fetched):
            if bookmark is None:
                logger.warning("Search index references missing bookmark %s", record_id)
                continue
            bookmarks.append(bookmark)
        return bookmarks
