"""Index store adapter — key-value access to the blind search index.

Rows are keyed by ``(owner_id, token_hmac, record_id)``. Two access paths
exist: the primary exact-match lookup on ``(owner_id, token_hmac)`` and the
secondary, owner-ordered lookup on ``(owner_id[, record_id])``. Writes and
deletes go out in batches no larger than ``batch_write_limit``.

SQLModel sessions are synchronous; every public method runs its session in a
worker thread so callers stay on the event loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from pinref.models.search_index import SearchIndexEntry

logger = logging.getLogger(__name__)

DEFAULT_BATCH_WRITE_LIMIT = 25


class IndexStoreError(Exception):
    """Raised when the index store cannot complete a read or write."""


class BatchLimitExceededError(ValueError):
    """Raised when a single batch holds more rows than the store accepts."""


@dataclass(frozen=True, slots=True)
class IndexKey:
    owner_id: str
    token_hmac: str
    record_id: str


class SearchIndexStore:
    """Async adapter over the ``search_index`` table."""

    __slots__ = ("_engine", "batch_write_limit")

    def __init__(self, engine: Engine, batch_write_limit: int = DEFAULT_BATCH_WRITE_LIMIT) -> None:
        if batch_write_limit < 1:
            raise ValueError(f"batch_write_limit must be >= 1, got {batch_write_limit}")
        self._engine = engine
        self.batch_write_limit = batch_write_limit

    async def batch_put(self, entries: Sequence[SearchIndexEntry]) -> None:
        """Upsert one batch of rows; an existing key is overwritten in place."""
        self._check_batch(len(entries))
        if not entries:
            return
        await self._run(self._batch_put_sync, list(entries))

    async def batch_delete(self, keys: Sequence[IndexKey]) -> None:
        """Delete one batch of rows by primary key. Missing keys are ignored."""
        self._check_batch(len(keys))
        if not keys:
            return
        await self._run(self._batch_delete_sync, list(keys))

    async def query_token(self, owner_id: str, token_hmac: str) -> list[str]:
        """Exact-match lookup: record ids indexed under (owner_id, token_hmac)."""
        return await self._run(self._query_token_sync, owner_id, token_hmac)

    async def query_owner(
        self, owner_id: str, record_id: str | None = None
    ) -> list[IndexKey]:
        """Secondary lookup: an owner's rows ordered by creation time.

        When ``record_id`` is given only that record's rows are returned.
        """
        return await self._run(self._query_owner_sync, owner_id, record_id)

    async def count_owner(self, owner_id: str) -> int:
        return await self._run(self._count_owner_sync, owner_id)

    # ── internals ─────────────────────────────────────────────────────

    def _check_batch(self, size: int) -> None:
        if size > self.batch_write_limit:
            raise BatchLimitExceededError(
                f"Batch of {size} rows exceeds the store limit of {self.batch_write_limit}"
            )

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            logger.warning("Index store operation %s failed: %s", fn.__name__, exc)
            raise IndexStoreError(f"Index store unavailable: {exc}") from exc

    def _batch_put_sync(self, entries: list[SearchIndexEntry]) -> None:
        with Session(self._engine) as session:
            for entry in entries:
                session.merge(
                    SearchIndexEntry(
                        owner_id=entry.owner_id,
                        token_hmac=entry.token_hmac,
                        record_id=entry.record_id,
                        created_at=entry.created_at,
                    )
                )
            session.commit()

    def _batch_delete_sync(self, keys: list[IndexKey]) -> None:
        with Session(self._engine) as session:
            for key in keys:
                row = session.get(
                    SearchIndexEntry, (key.owner_id, key.token_hmac, key.record_id)
                )
                if row is not None:
                    session.delete(row)
            session.commit()

    def _query_token_sync(self, owner_id: str, token_hmac: str) -> list[str]:
        with Session(self._engine) as session:
            stmt = (
                select(SearchIndexEntry.record_id)
                .where(SearchIndexEntry.owner_id == owner_id)
                .where(SearchIndexEntry.token_hmac == token_hmac)
            )
            return list(session.exec(stmt).all())

    def _query_owner_sync(self, owner_id: str, record_id: str | None) -> list[IndexKey]:
        with Session(self._engine) as session:
            stmt = select(SearchIndexEntry).where(SearchIndexEntry.owner_id == owner_id)
            if record_id is not None:
                stmt = stmt.where(SearchIndexEntry.record_id == record_id)
            stmt = stmt.order_by(SearchIndexEntry.created_at, SearchIndexEntry.token_hmac)
            return [
                IndexKey(row.owner_id, row.token_hmac, row.record_id)
                for row in session.exec(stmt).all()
            ]

    def _count_owner_sync(self, owner_id: str) -> int:
        with Session(self._engine) as session:
            stmt = (
                select(func.count())
                .select_from(SearchIndexEntry)
                .where(SearchIndexEntry.owner_id == owner_id)
            )
            return session.exec(stmt).one()
