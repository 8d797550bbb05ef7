from __future__ import annotations

import warnings
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    db_url: str = "sqlite:///./pinref.db"
    log_level: str = "INFO"

    # Server secret for field encryption and blind index HMACs
    encryption_key: str = ""
    encryption_salt: str = "pinref-bookmark-manager"
    allow_insecure_key: bool = False

    @model_validator(mode="after")
    def _check_encryption_key(self) -> Settings:
        self.encryption_key = self.encryption_key.strip()
        if not self.encryption_key:
            if self.allow_insecure_key:
                warnings.warn(
                    "ENCRYPTION_KEY is empty but ALLOW_INSECURE_KEY is set, so "
                    "bookmarks and search tokens are keyed with an empty secret. "
                    "Only use this for development.",
                    stacklevel=2,
                )
            else:
                raise ValueError(
                    "ENCRYPTION_KEY is not set. Bookmark content and search tokens "
                    "cannot be protected without it. Set ENCRYPTION_KEY in .env or "
                    "set ALLOW_INSECURE_KEY=1 for development."
                )
        return self

    # Index store
    index_batch_write_limit: int = 25  # Max rows per batch write/delete

    # Query engine
    search_max_lookup_tokens: int = 6
    search_results_limit: int = 100
    search_fetch_concurrency: int = 10  # Parallel bookmark hydrations

    # Rebuild coordinator
    rebuild_page_size: int = 500
    rebuild_concurrency: int = 10


@lru_cache
def get_settings() -> Settings:
    return Settings()
