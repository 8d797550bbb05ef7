"""Index writer — creates and removes a bookmark's blind index rows."""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from datetime import datetime, timezone
from typing import TypeVar

from pinref.models.search_index import SearchIndexEntry
from pinref.services.index_store import SearchIndexStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class IndexWriter:
    """Writes hashed tokens to the index store in bounded, sequential batches.

    There is no transaction spanning batches: if one fails, the batches
    before it stay written and the error propagates. The record's index is
    then stale until its next update or a rebuild.
    """

    __slots__ = ("store", "token_hasher")

    def __init__(
        self,
        store: SearchIndexStore,
        token_hasher: Callable[[str], str],
    ) -> None:
        self.store = store
        self.token_hasher = token_hasher

    async def create_entries(
        self, owner_id: str, record_id: str, tokens: Iterable[str]
    ) -> int:
        """Write one row per unique token for ``record_id``. Returns rows written."""
        hashes = sorted({self.token_hasher(token) for token in tokens})
        if not hashes:
            return 0

        now = datetime.now(timezone.utc)
        entries = [
            SearchIndexEntry(
                owner_id=owner_id,
                token_hmac=token_hmac,
                record_id=record_id,
                created_at=now,
            )
            for token_hmac in hashes
        ]

        batches = 0
        for batch in chunked(entries, self.store.batch_write_limit):
            await self.store.batch_put(batch)
            batches += 1

        logger.debug(
            "Indexed record %s: %d rows in %d batches", record_id, len(entries), batches
        )
        return len(entries)

    async def delete_entries(self, owner_id: str, record_id: str) -> int:
        """Remove every row referencing ``record_id`` for ``owner_id``. Returns rows deleted."""
        keys = await self.store.query_owner(owner_id, record_id=record_id)
        keys = [k for k in keys if k.record_id == record_id]
        if not keys:
            return 0

        for batch in chunked(keys, self.store.batch_write_limit):
            await self.store.batch_delete(batch)

        logger.debug("Removed %d index rows for record %s", len(keys), record_id)
        return len(keys)
