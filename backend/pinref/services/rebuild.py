"""Rebuild service — regenerate an owner's whole search index.

Best-effort bulk repair: each bookmark's rows are deleted and recreated from
its current decrypted content. A bookmark that fails is logged and skipped;
re-running the rebuild is the way to retry it. The rebuild is not a
snapshot, so edits made while it runs may need another pass.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pinref.services.bookmark_store import BookmarkNotFoundError, BookmarkStore
from pinref.services.index_writer import IndexWriter
from pinref.services.tokenizer import index_tokens
from pinref.utils.concurrency import KeyedLock, gather_bounded

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500
DEFAULT_CONCURRENCY = 10


@dataclass
class RebuildResult:
    success_count: int = 0
    failure_count: int = 0
    rows_written: int = 0
    failed_ids: list[str] = field(default_factory=list)


class RebuildService:
    """Pages through an owner's bookmarks and re-indexes each one."""

    __slots__ = ("bookmark_store", "index_writer", "page_size", "concurrency", "locks")

    def __init__(
        self,
        bookmark_store: BookmarkStore,
        index_writer: IndexWriter,
        page_size: int = DEFAULT_PAGE_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
        locks: KeyedLock | None = None,
    ) -> None:
        self.bookmark_store = bookmark_store
        self.index_writer = index_writer
        self.page_size = page_size
        self.concurrency = concurrency
        self.locks = locks

    async def rebuild_index(self, owner_id: str) -> RebuildResult:
        """Re-index every bookmark of ``owner_id``.

        Failures listing the bookmarks propagate; failures on individual
        bookmarks are counted in the result.
        """
        result = RebuildResult()
        cursor = None
        page_number = 0

        while True:
            page = await self.bookmark_store.list_ids(
                owner_id, limit=self.page_size, cursor=cursor
            )
            page_number += 1

            outcomes = await gather_bounded(
                page.ids,
                lambda record_id: self._reindex(owner_id, record_id),
                self.concurrency,
                return_exceptions=True,
            )
            for record_id, outcome in zip(page.ids, outcomes):
                if isinstance(outcome, Exception):
                    logger.error(
                        "Rebuild failed for bookmark %s",
                        record_id,
                        exc_info=(type(outcome), outcome, outcome.__traceback__),
                    )
                    result.failure_count += 1
                    result.failed_ids.append(record_id)
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.success_count += 1
                    result.rows_written += outcome

            logger.debug(
                "Rebuild page %d for owner %s: %d bookmarks",
                page_number,
                owner_id,
                len(page.ids),
            )
            if page.next_cursor is None:
                break
            cursor = page.next_cursor

        logger.info(
            "Rebuilt search index for owner %s: %d succeeded, %d failed, %d rows",
            owner_id,
            result.success_count,
            result.failure_count,
            result.rows_written,
        )
        return result

    async def _reindex(self, owner_id: str, record_id: str) -> int:
        if self.locks is None:
            return await self._replace_rows(owner_id, record_id)
        async with self.locks.hold(record_id):
            return await self._replace_rows(owner_id, record_id)

    async def _replace_rows(self, owner_id: str, record_id: str) -> int:
        bookmark = await self.bookmark_store.get(record_id, owner_id=owner_id)
        if bookmark is None:
            raise BookmarkNotFoundError(f"Bookmark {record_id} disappeared during rebuild")
        await self.index_writer.delete_entries(owner_id, bookmark.id)
        tokens = index_tokens(bookmark.searchable_text())
        return await self.index_writer.create_entries(owner_id, bookmark.id, tokens)
