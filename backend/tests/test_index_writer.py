"""Tests for backend/pinref/services/index_writer.py."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from pinref.services.encryption import EncryptionService
from pinref.services.index_store import IndexKey, IndexStoreError, SearchIndexStore
from pinref.services.index_writer import IndexWriter, chunked
from pinref.services.tokenizer import index_tokens


def _mock_store(limit: int = 25) -> MagicMock:
    store = MagicMock(spec=SearchIndexStore)
    store.batch_write_limit = limit
    store.batch_put = AsyncMock()
    store.batch_delete = AsyncMock()
    store.query_owner = AsyncMock(return_value=[])
    return store


class TestChunked:
    def test_even_and_remainder(self):
        assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        assert list(chunked([], 3)) == []

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestCreateEntries:
    @pytest.mark.asyncio
    async def test_splits_into_batches(self, encryption_service: EncryptionService):
        store = _mock_store(limit=25)
        writer = IndexWriter(store, encryption_service.hmac_search_token)

        written = await writer.create_entries("o1", "r1", [f"token{i}" for i in range(30)])

        assert written == 30
        sizes = [len(call.args[0]) for call in store.batch_put.await_args_list]
        assert sizes == [25, 5]

    @pytest.mark.asyncio
    async def test_rows_are_hashed(self, encryption_service: EncryptionService):
        store = _mock_store()
        writer = IndexWriter(store, encryption_service.hmac_search_token)

        await writer.create_entries("o1", "r1", ["css", "grid"])

        entries = store.batch_put.await_args.args[0]
        assert {e.token_hmac for e in entries} == {
            encryption_service.hmac_search_token("css"),
            encryption_service.hmac_search_token("grid"),
        }
        assert all(e.owner_id == "o1" and e.record_id == "r1" for e in entries)

    @pytest.mark.asyncio
    async def test_duplicates_collapsed(self, encryption_service: EncryptionService):
        store = _mock_store()
        writer = IndexWriter(store, encryption_service.hmac_search_token)
        assert await writer.create_entries("o1", "r1", ["css", "css", "css"]) == 1

    @pytest.mark.asyncio
    async def test_no_tokens(self, encryption_service: EncryptionService):
        store = _mock_store()
        writer = IndexWriter(store, encryption_service.hmac_search_token)
        assert await writer.create_entries("o1", "r1", []) == 0
        store.batch_put.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_batch_propagates(self, encryption_service: EncryptionService):
        """A failure stops the remaining batches; earlier batches stay written."""
        store = _mock_store(limit=10)
        store.batch_put = AsyncMock(side_effect=[None, IndexStoreError("down"), None])
        writer = IndexWriter(store, encryption_service.hmac_search_token)

        with pytest.raises(IndexStoreError):
            await writer.create_entries("o1", "r1", [f"t{i}" for i in range(25)])
        assert store.batch_put.await_count == 2

    @pytest.mark.asyncio
    async def test_idempotent_against_store(
        self, index_writer: IndexWriter, index_store: SearchIndexStore
    ):
        tokens = index_tokens("Tailwind CSS - Rapidly build modern websites")
        first = await index_writer.create_entries("o1", "r1", tokens)
        second = await index_writer.create_entries("o1", "r1", tokens)
        assert first == second == len(tokens)
        assert await index_store.count_owner("o1") == len(tokens)


class TestDeleteEntries:
    @pytest.mark.asyncio
    async def test_removes_every_row(
        self, index_writer: IndexWriter, index_store: SearchIndexStore
    ):
        tokens = index_tokens("JavaScript tutorial for absolute beginners developer.mozilla.org")
        assert len(tokens) > 25
        await index_writer.create_entries("o1", "r1", tokens)
        await index_writer.create_entries("o1", "r2", ["keep"])

        deleted = await index_writer.delete_entries("o1", "r1")

        assert deleted == len(tokens)
        assert await index_store.query_owner("o1", record_id="r1") == []
        assert await index_store.count_owner("o1") == 1

    @pytest.mark.asyncio
    async def test_nothing_to_delete(self, index_writer: IndexWriter):
        assert await index_writer.delete_entries("o1", "missing") == 0

    @pytest.mark.asyncio
    async def test_delete_batches(self, encryption_service: EncryptionService):
        store = _mock_store(limit=25)
        store.query_owner = AsyncMock(
            return_value=[IndexKey("o1", f"t{i}", "r1") for i in range(60)]
        )
        writer = IndexWriter(store, encryption_service.hmac_search_token)

        assert await writer.delete_entries("o1", "r1") == 60
        sizes = [len(call.args[0]) for call in store.batch_delete.await_args_list]
        assert sizes == [25, 25, 10]
        store.query_owner.assert_awaited_once_with("o1", record_id="r1")

    @pytest.mark.asyncio
    async def test_other_owner_untouched(
        self, index_writer: IndexWriter, index_store: SearchIndexStore
    ):
        await index_writer.create_entries("o1", "r1", ["css"])
        await index_writer.create_entries("o2", "r1", ["css"])
        await index_writer.delete_entries("o1", "r1")
        assert await index_store.count_owner("o2") == 1
