from __future__ import annotations

import os
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from pinref.db import create_db_and_tables, create_db_engine
from pinref.services.bookmark_store import BookmarkStore
from pinref.services.bookmarks import BookmarkService
from pinref.services.encryption import EncryptionService
from pinref.services.index_store import SearchIndexStore
from pinref.services.index_writer import IndexWriter
from pinref.services.rebuild import RebuildService
from pinref.services.search import SearchService
from pinref.utils.concurrency import KeyedLock


# ── Database fixtures ─────────────────────────────────────────────────


@pytest.fixture(name="engine")
def engine_fixture(tmp_path: Path):
    """File-backed SQLite engine, recreated per test for full isolation.

    A file (not ``sqlite://``) so that concurrent worker threads each get
    their own connection.
    """
    engine = create_db_engine(f"sqlite:///{tmp_path / 'pinref-test.db'}")
    create_db_and_tables(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


# ── Encryption fixtures ───────────────────────────────────────────────


@pytest.fixture(name="master_key")
def master_key_fixture() -> bytes:
    return os.urandom(32)


@pytest.fixture(name="encryption_service")
def encryption_service_fixture(master_key: bytes) -> EncryptionService:
    """Pre-initialized EncryptionService for unit tests."""
    return EncryptionService(master_key)


# ── Store and service fixtures ────────────────────────────────────────


@pytest.fixture(name="index_store")
def index_store_fixture(engine: Engine) -> SearchIndexStore:
    return SearchIndexStore(engine, batch_write_limit=25)


@pytest.fixture(name="bookmark_store")
def bookmark_store_fixture(
    engine: Engine, encryption_service: EncryptionService
) -> BookmarkStore:
    return BookmarkStore(engine, encryption_service)


@pytest.fixture(name="index_writer")
def index_writer_fixture(
    index_store: SearchIndexStore, encryption_service: EncryptionService
) -> IndexWriter:
    return IndexWriter(index_store, encryption_service.hmac_search_token)


@pytest.fixture(name="search_service")
def search_service_fixture(
    index_store: SearchIndexStore,
    bookmark_store: BookmarkStore,
    encryption_service: EncryptionService,
) -> SearchService:
    return SearchService(
        index_store=index_store,
        bookmark_store=bookmark_store,
        token_hasher=encryption_service.hmac_search_token,
    )


@pytest.fixture(name="locks")
def locks_fixture() -> KeyedLock:
    return KeyedLock()


@pytest.fixture(name="rebuild_service")
def rebuild_service_fixture(
    bookmark_store: BookmarkStore, index_writer: IndexWriter, locks: KeyedLock
) -> RebuildService:
    return RebuildService(bookmark_store, index_writer, page_size=500, locks=locks)


@pytest.fixture(name="bookmark_service")
def bookmark_service_fixture(
    bookmark_store: BookmarkStore,
    index_writer: IndexWriter,
    search_service: SearchService,
    rebuild_service: RebuildService,
    locks: KeyedLock,
) -> BookmarkService:
    return BookmarkService(
        bookmark_store=bookmark_store,
        index_writer=index_writer,
        search_service=search_service,
        rebuild_service=rebuild_service,
        locks=locks,
    )
