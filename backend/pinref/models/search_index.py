"""SearchIndexEntry model — blind inverted index for encrypted search."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Index
from sqlmodel import Field, SQLModel


class SearchIndexEntry(SQLModel, table=True):
    __tablename__ = "search_index"
    __table_args__ = (
        # Secondary, owner-ordered lookup: all rows of an owner (optionally one record)
        Index("ix_search_index_owner_record", "owner_id", "record_id", "created_at"),
    )

    owner_id: str = Field(primary_key=True)
    token_hmac: str = Field(primary_key=True)  # HMAC-SHA256 hex digest of a token
    record_id: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
