"""Tests for backend/pinref/services/bookmark_store.py."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from pinref.models.bookmark import BookmarkCreate, BookmarkUpdate
from pinref.services.bookmark_store import (
    BookmarkNotFoundError,
    BookmarkStore,
    domain_from_url,
)


OWNER = "owner-1"


class TestDomainFromUrl:
    def test_hostname(self):
        assert domain_from_url("https://developer.mozilla.org/en-US/") == "developer.mozilla.org"

    def test_not_a_url(self):
        assert domain_from_url("just some text") is None


class TestPutGet:
    @pytest.mark.asyncio
    async def test_roundtrip(self, bookmark_store: BookmarkStore):
        created = await bookmark_store.put(
            OWNER,
            BookmarkCreate(url="  https://tailwindcss.com  ", title="Tailwind CSS", is_favorite=True),
        )
        fetched = await bookmark_store.get(created.id)

        assert fetched == created
        assert fetched.url == "https://tailwindcss.com"
        assert fetched.title == "Tailwind CSS"
        assert fetched.description is None
        assert fetched.domain == "tailwindcss.com"
        assert fetched.is_favorite is True

    @pytest.mark.asyncio
    async def test_explicit_domain_kept(self, bookmark_store: BookmarkStore):
        created = await bookmark_store.put(
            OWNER, BookmarkCreate(url="https://example.com", domain="docs.example.com")
        )
        assert created.domain == "docs.example.com"

    @pytest.mark.asyncio
    async def test_missing(self, bookmark_store: BookmarkStore):
        assert await bookmark_store.get("nope") is None

    @pytest.mark.asyncio
    async def test_other_owner_hidden(self, bookmark_store: BookmarkStore):
        created = await bookmark_store.put(OWNER, BookmarkCreate(url="https://a.example"))
        assert await bookmark_store.get(created.id, owner_id="other") is None
        assert await bookmark_store.get(created.id, owner_id=OWNER) is not None

    def test_empty_url_rejected(self):
        with pytest.raises(ValidationError):
            BookmarkCreate(url="   ")


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update(self, bookmark_store: BookmarkStore):
        created = await bookmark_store.put(
            OWNER, BookmarkCreate(url="https://a.example", title="Old", description="Keep me")
        )

        updated = await bookmark_store.update(created.id, BookmarkUpdate(title="New"))

        assert updated.title == "New"
        assert updated.description == "Keep me"
        assert updated.url == "https://a.example"
        assert updated.updated_at >= created.updated_at

    @pytest.mark.asyncio
    async def test_clear_field(self, bookmark_store: BookmarkStore):
        created = await bookmark_store.put(
            OWNER, BookmarkCreate(url="https://a.example", description="Remove me")
        )
        updated = await bookmark_store.update(created.id, BookmarkUpdate(description=None))
        assert updated.description is None

    @pytest.mark.asyncio
    async def test_favorite_none_is_ignored(self, bookmark_store: BookmarkStore):
        created = await bookmark_store.put(
            OWNER, BookmarkCreate(url="https://a.example", is_favorite=True)
        )
        updated = await bookmark_store.update(created.id, BookmarkUpdate(is_favorite=None))
        assert updated.is_favorite is True

    @pytest.mark.asyncio
    async def test_missing(self, bookmark_store: BookmarkStore):
        with pytest.raises(BookmarkNotFoundError):
            await bookmark_store.update("nope", BookmarkUpdate(title="x"))

    def test_empty_url_patch_rejected(self):
        with pytest.raises(ValidationError):
            BookmarkUpdate(url="")

    def test_touches_content(self):
        assert BookmarkUpdate(title="x").touches_content()
        assert BookmarkUpdate(url="https://x.example").touches_content()
        assert not BookmarkUpdate(is_favorite=True).touches_content()
        assert not BookmarkUpdate(category_id="c1").touches_content()


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete(self, bookmark_store: BookmarkStore):
        created = await bookmark_store.put(OWNER, BookmarkCreate(url="https://a.example"))
        assert await bookmark_store.delete(created.id) is True
        assert await bookmark_store.get(created.id) is None
        assert await bookmark_store.delete(created.id) is False


class TestListing:
    @pytest.mark.asyncio
    async def test_pages_newest_first(self, bookmark_store: BookmarkStore):
        created = [
            await bookmark_store.put(OWNER, BookmarkCreate(url=f"https://example.com/{i}"))
            for i in range(5)
        ]
        await bookmark_store.put("other", BookmarkCreate(url="https://other.example"))

        seen: list[str] = []
        cursor = None
        pages = 0
        while True:
            page = await bookmark_store.list_page(OWNER, limit=2, cursor=cursor)
            pages += 1
            seen.extend(item.id for item in page.items)
            if page.next_cursor is None:
                break
            cursor = page.next_cursor

        assert pages == 3
        assert sorted(seen) == sorted(b.id for b in created)
        assert len(seen) == len(set(seen))
        assert seen[0] == created[-1].id

    @pytest.mark.asyncio
    async def test_list_ids_matches_list_page(self, bookmark_store: BookmarkStore):
        for i in range(3):
            await bookmark_store.put(OWNER, BookmarkCreate(url=f"https://example.com/{i}"))

        page = await bookmark_store.list_page(OWNER, limit=10)
        id_page = await bookmark_store.list_ids(OWNER, limit=10)

        assert id_page.ids == [item.id for item in page.items]
        assert id_page.next_cursor is None

    @pytest.mark.asyncio
    async def test_exact_page_has_no_cursor(self, bookmark_store: BookmarkStore):
        for i in range(2):
            await bookmark_store.put(OWNER, BookmarkCreate(url=f"https://example.com/{i}"))
        page = await bookmark_store.list_ids(OWNER, limit=2)
        assert len(page.ids) == 2
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_invalid_limit(self, bookmark_store: BookmarkStore):
        with pytest.raises(ValueError):
            await bookmark_store.list_ids(OWNER, limit=0)
