"""Bookmark store — encrypted primary storage for bookmarks.

Title, description, domain and URL are encrypted field by field; the rest of
the row (owner, timestamps, category, favorite flag) is plaintext. Callers
only ever see the decrypted ``BookmarkRead`` view.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urlparse

from sqlalchemy import and_, or_
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from pinref.models.bookmark import (
    CONTENT_FIELDS,
    Bookmark,
    BookmarkCreate,
    BookmarkRead,
    BookmarkUpdate,
)
from pinref.services.encryption import EncryptionService

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 500


class BookmarkNotFoundError(Exception):
    """Raised when a bookmark id does not exist (or belongs to another owner)."""


@dataclass(frozen=True, slots=True)
class BookmarkCursor:
    """Keyset position: the last (created_at, id) returned by a page."""
    created_at: datetime
    id: str


@dataclass(frozen=True, slots=True)
class BookmarkPage:
    items: list[BookmarkRead]
    next_cursor: BookmarkCursor | None


@dataclass(frozen=True, slots=True)
class BookmarkIdPage:
    ids: list[str]
    next_cursor: BookmarkCursor | None


def domain_from_url(url: str) -> str | None:
    """Hostname of ``url``, or None when it does not parse as an absolute URL."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    return hostname or None


class BookmarkStore:
    """CRUD and paged listing over the ``bookmarks`` table."""

    __slots__ = ("_engine", "encryption_service")

    def __init__(self, engine: Engine, encryption_service: EncryptionService) -> None:
        self._engine = engine
        self.encryption_service = encryption_service

    async def put(self, owner_id: str, data: BookmarkCreate) -> BookmarkRead:
        return await asyncio.to_thread(self._put_sync, owner_id, data)

    async def get(self, record_id: str, owner_id: str | None = None) -> BookmarkRead | None:
        """Fetch and decrypt one bookmark; None if missing or owned by someone else."""
        return await asyncio.to_thread(self._get_sync, record_id, owner_id)

    async def update(self, record_id: str, patch: BookmarkUpdate) -> BookmarkRead:
        return await asyncio.to_thread(self._update_sync, record_id, patch)

    async def delete(self, record_id: str) -> bool:
        return await asyncio.to_thread(self._delete_sync, record_id)

    async def list_page(
        self,
        owner_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: BookmarkCursor | None = None,
    ) -> BookmarkPage:
        """One page of an owner's bookmarks, newest first."""
        return await asyncio.to_thread(self._list_page_sync, owner_id, limit, cursor)

    async def list_ids(
        self,
        owner_id: str,
        limit: int = DEFAULT_PAGE_SIZE,
        cursor: BookmarkCursor | None = None,
    ) -> BookmarkIdPage:
        """One page of an owner's bookmark ids, newest first, without decrypting."""
        return await asyncio.to_thread(self._list_ids_sync, owner_id, limit, cursor)

    # ── encryption helpers ────────────────────────────────────────────

    def _seal(self, bookmark: Bookmark, field: str, value: str | None) -> None:
        if value is None or value == "":
            setattr(bookmark, field, None)
            setattr(bookmark, f"{field}_dek", None)
            return
        ciphertext, dek = self.encryption_service.encrypt_field(value)
        setattr(bookmark, field, ciphertext)
        setattr(bookmark, f"{field}_dek", dek)

    def _open(self, bookmark: Bookmark, field: str) -> str | None:
        ciphertext = getattr(bookmark, field)
        dek = getattr(bookmark, f"{field}_dek")
        if ciphertext is None or dek is None:
            return None
        return self.encryption_service.decrypt_field(
            ciphertext, dek, bookmark.encryption_algo, bookmark.encryption_version
        )

    def _to_read(self, bookmark: Bookmark) -> BookmarkRead:
        return BookmarkRead(
            id=bookmark.id,
            owner_id=bookmark.owner_id,
            created_at=bookmark.created_at,
            updated_at=bookmark.updated_at,
            url=self._open(bookmark, "url") or "",
            title=self._open(bookmark, "title"),
            description=self._open(bookmark, "description"),
            domain=self._open(bookmark, "domain"),
            category_id=bookmark.category_id,
            is_favorite=bookmark.is_favorite,
        )

    # ── sync implementations ──────────────────────────────────────────

    def _put_sync(self, owner_id: str, data: BookmarkCreate) -> BookmarkRead:
        url_ct, url_dek = self.encryption_service.encrypt_field(data.url)
        bookmark = Bookmark(
            owner_id=owner_id,
            url=url_ct,
            url_dek=url_dek,
            category_id=data.category_id,
            is_favorite=data.is_favorite,
        )
        self._seal(bookmark, "title", data.title)
        self._seal(bookmark, "description", data.description)
        self._seal(bookmark, "domain", data.domain or domain_from_url(data.url))

        with Session(self._engine) as session:
            session.add(bookmark)
            session.commit()
            session.refresh(bookmark)
            return self._to_read(bookmark)

    def _get_sync(self, record_id: str, owner_id: str | None) -> BookmarkRead | None:
        with Session(self._engine) as session:
            bookmark = session.get(Bookmark, record_id)
            if bookmark is None:
                return None
            if owner_id is not None and bookmark.owner_id != owner_id:
                return None
            return self._to_read(bookmark)

    def _update_sync(self, record_id: str, patch: BookmarkUpdate) -> BookmarkRead:
        with Session(self._engine) as session:
            bookmark = session.get(Bookmark, record_id)
            if bookmark is None:
                raise BookmarkNotFoundError(f"Bookmark {record_id} not found")

            for name, value in patch.changes().items():
                if name in CONTENT_FIELDS:
                    if name == "url":
                        value = value.strip()
                    self._seal(bookmark, name, value)
                elif name == "is_favorite" and value is None:
                    continue
                else:
                    setattr(bookmark, name, value)

            bookmark.updated_at = datetime.now(timezone.utc)
            session.add(bookmark)
            session.commit()
            session.refresh(bookmark)
            return self._to_read(bookmark)

    def _delete_sync(self, record_id: str) -> bool:
        with Session(self._engine) as session:
            bookmark = session.get(Bookmark, record_id)
            if bookmark is None:
                return False
            session.delete(bookmark)
            session.commit()
            return True

    def _list_page_sync(
        self, owner_id: str, limit: int, cursor: BookmarkCursor | None
    ) -> BookmarkPage:
        with Session(self._engine) as session:
            rows, next_cursor = self._page_rows(session, owner_id, limit, cursor)
            items = [self._to_read(row) for row in rows]
        return BookmarkPage(items=items, next_cursor=next_cursor)

    def _list_ids_sync(
        self, owner_id: str, limit: int, cursor: BookmarkCursor | None
    ) -> BookmarkIdPage:
        with Session(self._engine) as session:
            rows, next_cursor = self._page_rows(session, owner_id, limit, cursor)
            ids = [row.id for row in rows]
        return BookmarkIdPage(ids=ids, next_cursor=next_cursor)

    def _page_rows(
        self,
        session: Session,
        owner_id: str,
        limit: int,
        cursor: BookmarkCursor | None,
    ) -> tuple[list[Bookmark], BookmarkCursor | None]:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        stmt = select(Bookmark).where(Bookmark.owner_id == owner_id)
        if cursor is not None:
            stmt = stmt.where(
                or_(
                    Bookmark.created_at < cursor.created_at,
                    and_(
                        Bookmark.created_at == cursor.created_at,
                        Bookmark.id < cursor.id,
                    ),
                )
            )
        stmt = stmt.order_by(Bookmark.created_at.desc(), Bookmark.id.desc()).limit(limit + 1)
        rows = list(session.exec(stmt).all())

        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_cursor = BookmarkCursor(created_at=rows[-1].created_at, id=rows[-1].id)
        return rows, next_cursor
