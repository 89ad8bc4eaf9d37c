# ABOUTME: Public API for reading the Kindle synced-collections database.
# ABOUTME: Exports the read-only connection helpers, the collection store, and row types.

from kindlecat.db.collections import CollectionParseResult, CollectionStore
from kindlecat.db.connection import open_readonly, readonly_store
from kindlecat.db.mapping import Association, CollectionRecord

__all__ = [
    "Association",
    "CollectionParseResult",
    "CollectionRecord",
    "CollectionStore",
    "open_readonly",
    "readonly_store",
]
