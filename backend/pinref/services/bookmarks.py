"""Bookmark service — keeps the blind index in step with bookmark writes.

The bookmark row and its index rows are not written in one transaction.
Index failures propagate so callers know a bookmark may be unsearchable (or,
after a failed delete, that stale rows may remain). Index mutations for the
same bookmark are serialized in-process with a per-bookmark lock.
"""
from __future__ import annotations

import logging

from pinref.config import Settings
from pinref.models.bookmark import BookmarkCreate, BookmarkRead, BookmarkUpdate
from pinref.services.bookmark_store import BookmarkNotFoundError, BookmarkStore
from pinref.services.encryption import EncryptionService
from pinref.services.index_store import SearchIndexStore
from pinref.services.index_writer import IndexWriter
from pinref.services.rebuild import RebuildResult, RebuildService
from pinref.services.search import SearchResult, SearchService
from pinref.services.tokenizer import index_tokens
from pinref.utils.concurrency import KeyedLock

logger = logging.getLogger(__name__)


class BookmarkService:
    """Create, update, delete and search bookmarks for one deployment."""

    __slots__ = (
        "bookmark_store",
        "index_writer",
        "search_service",
        "rebuild_service",
        "default_result_limit",
        "_locks",
    )

    def __init__(
        self,
        bookmark_store: BookmarkStore,
        index_writer: IndexWriter,
        search_service: SearchService,
        rebuild_service: RebuildService,
        default_result_limit: int = 100,
        locks: KeyedLock | None = None,
    ) -> None:
        self.bookmark_store = bookmark_store
        self.index_writer = index_writer
        self.search_service = search_service
        self.rebuild_service = rebuild_service
        self.default_result_limit = default_result_limit
        self._locks = locks if locks is not None else KeyedLock()

    @classmethod
    def from_settings(cls, engine, settings: Settings) -> BookmarkService:
        """Wire every collaborator from settings and an engine."""
        encryption_service = EncryptionService.from_secret(
            settings.encryption_key, settings.encryption_salt
        )
        bookmark_store = BookmarkStore(engine, encryption_service)
        index_store = SearchIndexStore(engine, settings.index_batch_write_limit)
        index_writer = IndexWriter(index_store, encryption_service.hmac_search_token)
        search_service = SearchService(
            index_store=index_store,
            bookmark_store=bookmark_store,
            token_hasher=encryption_service.hmac_search_token,
            max_lookup_tokens=settings.search_max_lookup_tokens,
            fetch_concurrency=settings.search_fetch_concurrency,
        )
        locks = KeyedLock()
        rebuild_service = RebuildService(
            bookmark_store=bookmark_store,
            index_writer=index_writer,
            page_size=settings.rebuild_page_size,
            concurrency=settings.rebuild_concurrency,
            locks=locks,
        )
        return cls(
            bookmark_store=bookmark_store,
            index_writer=index_writer,
            search_service=search_service,
            rebuild_service=rebuild_service,
            default_result_limit=settings.search_results_limit,
            locks=locks,
        )

    async def create_bookmark(self, owner_id: str, data: BookmarkCreate) -> BookmarkRead:
        bookmark = await self.bookmark_store.put(owner_id, data)
        async with self._locks.hold(bookmark.id):
            rows = await self.index_writer.create_entries(
                owner_id, bookmark.id, index_tokens(bookmark.searchable_text())
            )
        logger.info("Created bookmark %s (%d index rows)", bookmark.id, rows)
        return bookmark

    async def get_bookmark(self, owner_id: str, record_id: str) -> BookmarkRead:
        bookmark = await self.bookmark_store.get(record_id, owner_id=owner_id)
        if bookmark is None:
            raise BookmarkNotFoundError(f"Bookmark {record_id} not found")
        return bookmark

    async def update_bookmark(
        self, owner_id: str, record_id: str, patch: BookmarkUpdate
    ) -> BookmarkRead:
        """Apply ``patch``; content changes fully replace the bookmark's index rows."""
        async with self._locks.hold(record_id):
            await self.get_bookmark(owner_id, record_id)
            bookmark = await self.bookmark_store.update(record_id, patch)
            if patch.touches_content():
                await self.index_writer.delete_entries(owner_id, record_id)
                await self.index_writer.create_entries(
                    owner_id, record_id, index_tokens(bookmark.searchable_text())
                )
                logger.info("Updated bookmark %s and re-indexed it", record_id)
        return bookmark

    async def delete_bookmark(self, owner_id: str, record_id: str) -> None:
        """Remove the index rows, then the bookmark itself."""
        async with self._locks.hold(record_id):
            await self.get_bookmark(owner_id, record_id)
            rows = await self.index_writer.delete_entries(owner_id, record_id)
            await self.bookmark_store.delete(record_id)
        logger.info("Deleted bookmark %s (%d index rows)", record_id, rows)

    async def search(
        self, owner_id: str, query: str, result_limit: int | None = None
    ) -> SearchResult:
        if result_limit is None:
            result_limit = self.default_result_limit
        return await self.search_service.search(owner_id, query, result_limit)

    async def rebuild_index(self, owner_id: str) -> RebuildResult:
        return await self.rebuild_service.rebuild_index(owner_id)
