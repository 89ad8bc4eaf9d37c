# ABOUTME: Collection and association records read from synced_collections.db.
# ABOUTME: Converts sqlite3.Row objects into typed records and back into display dicts.

from dataclasses import dataclass
from typing import Any

UNTITLED_COLLECTION = "Untitled"


@dataclass
class CollectionRecord:
    """A user collection from the Kindle store.

    book_count starts at zero and is set once by recompute_book_counts().
    """

    id: str
    name: str
    book_count: int = 0
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "book_count": self.book_count,
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True)
class Association:
    """One book-to-collection link (many-to-many join row)."""

    collection_id: str
    asin: str


def _text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def row_to_collection(row: Any) -> CollectionRecord | None:
    """Convert a Collections row to a CollectionRecord.

    Returns None for rows with no identifier. A blank name becomes "Untitled".
    last_modified is kept as text whether SQLite stored it as text or a number.
    """
    collection_id = _text_or_none(row["id"])
    if collection_id is None:
        return None
    return CollectionRecord(
        id=collection_id,
        name=_text_or_none(row["name"]) or UNTITLED_COLLECTION,
        book_count=0,
        last_updated=_text_or_none(row["last_updated"]),
    )


def row_to_association(row: Any) -> Association | None:
    """Convert a Collection_Item_Association row, or None if either key is blank."""
    collection_id = _text_or_none(row["collection_id"])
    asin = _text_or_none(row["asin"])
    if collection_id is None or asin is None:
        return None
    return Association(collection_id=collection_id, asin=asin)
