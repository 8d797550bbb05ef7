from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, model_validator
from sqlalchemy import Index
from sqlmodel import Field, SQLModel

# Fields encrypted at rest and fed to the tokenizer, in searchable-text order
CONTENT_FIELDS: tuple[str, ...] = ("title", "description", "domain", "url")


class Bookmark(SQLModel, table=True):
    __tablename__ = "bookmarks"
    __table_args__ = (
        Index("ix_bookmarks_owner_created", "owner_id", "created_at", "id"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Content (hex-encoded ciphertext)
    url: str
    title: str | None = Field(default=None)
    description: str | None = Field(default=None)
    domain: str | None = Field(default=None)

    # Envelope encryption metadata, one DEK per content field
    url_dek: str
    title_dek: str | None = Field(default=None)
    description_dek: str | None = Field(default=None)
    domain_dek: str | None = Field(default=None)
    encryption_algo: str = Field(default="aes-256-gcm")
    encryption_version: int = Field(default=1)

    # Organisation (plaintext, not searchable)
    category_id: str | None = Field(default=None)
    is_favorite: bool = Field(default=False)


# --- Pydantic schemas for request/response validation ---

class BookmarkCreate(BaseModel):
    url: str
    title: str | None = None
    description: str | None = None
    domain: str | None = None
    category_id: str | None = None
    is_favorite: bool = False

    @model_validator(mode="after")
    def validate_url(self) -> "BookmarkCreate":
        self.url = self.url.strip()
        if not self.url:
            raise ValueError("url must not be empty")
        return self


class BookmarkUpdate(BaseModel):
    """Typed patch: only fields explicitly set are written."""

    url: str | None = None
    title: str | None = None
    description: str | None = None
    domain: str | None = None
    category_id: str | None = None
    is_favorite: bool | None = None

    @model_validator(mode="after")
    def validate_url(self) -> "BookmarkUpdate":
        if "url" in self.model_fields_set and not (self.url or "").strip():
            raise ValueError("url must not be empty")
        return self

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True)

    def touches_content(self) -> bool:
        return any(name in self.model_fields_set for name in CONTENT_FIELDS)


class BookmarkRead(BaseModel):
    """Decrypted view of a bookmark."""

    id: str
    owner_id: str
    created_at: datetime
    updated_at: datetime
    url: str
    title: str | None
    description: str | None
    domain: str | None
    category_id: str | None
    is_favorite: bool

    def searchable_text(self) -> str:
        """Title, description, domain and URL joined, skipping empty fields."""
        values = (getattr(self, name) for name in CONTENT_FIELDS)
        return " ".join(v for v in values if v)
