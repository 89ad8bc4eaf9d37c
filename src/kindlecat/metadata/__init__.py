# ABOUTME: Metadata package for Kindle book records and their validation rules.
# ABOUTME: Exports the BookRecord dataclass used throughout kindlecat.

from kindlecat.metadata.asin import is_valid_asin, validate_asin
from kindlecat.metadata.types import BookOrigin, BookRecord, RawBookMetadata

__all__ = [
    "BookOrigin",
    "BookRecord",
    "RawBookMetadata",
    "is_valid_asin",
    "validate_asin",
]
