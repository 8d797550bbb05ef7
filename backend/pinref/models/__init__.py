from __future__ import annotations

from pinref.models.bookmark import Bookmark  # noqa: F401
from pinref.models.search_index import SearchIndexEntry  # noqa: F401
