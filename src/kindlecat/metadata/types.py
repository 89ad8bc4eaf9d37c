# ABOUTME: Core book data structures shared by the XML extractor and the integrator.
# ABOUTME: RawBookMetadata comes from the XML cache; BookRecord is the validated catalog entry.

from dataclasses import dataclass
from enum import Enum

from kindlecat.errors import BookValidationError
from kindlecat.metadata.asin import validate_asin

UNKNOWN_AUTHOR = "Unknown"


class BookOrigin(str, Enum):
    """How a book entered the user's library. Only these two tags are recognized."""

    PURCHASE = "Purchase"
    KINDLE_UNLIMITED = "KindleUnlimited"

    @classmethod
    def parse(cls, value: str | None) -> "BookOrigin | None":
        """Map a raw origin tag to a member, or None if it is not one of the two."""
        if value is None:
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


@dataclass(frozen=True)
class PlainText:
    """An XML text node with no attributes."""

    text: str


@dataclass(frozen=True)
class AnnotatedText:
    """An XML text node carrying an optional pronunciation attribute."""

    text: str
    pronunciation: str | None = None


TextNode = PlainText | AnnotatedText


def flatten_text(node: TextNode) -> tuple[str, str | None]:
    """Reduce either text-node variant to a trimmed (text, pronunciation) pair.

    Empty pronunciations come back as None.
    """
    if isinstance(node, AnnotatedText):
        pronunciation = node.pronunciation.strip() if node.pronunciation else None
        return node.text.strip(), pronunciation or None
    return node.text.strip(), None


@dataclass(frozen=True)
class RawBookMetadata:
    """One <meta_data> element from KindleSyncMetadataCache.xml.

    Produced by the XML extractor and consumed once by the integrator.
    Dates are kept as the ISO-8601 strings found in the file.
    """

    asin: str
    title: str
    author: str = UNKNOWN_AUTHOR
    title_pronunciation: str | None = None
    author_pronunciation: str | None = None
    publisher: str | None = None
    publication_date: str | None = None
    purchase_date: str | None = None
    content_type: str | None = None
    mime_type: str | None = None
    origin: BookOrigin | None = None


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _unique_names(names: list[str] | tuple[str, ...]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for name in names:
        if not isinstance(name, str):
            continue
        cleaned = name.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


@dataclass(frozen=True)
class BookRecord:
    """A validated catalog entry: XML metadata joined with its collection names.

    Build instances with BookRecord.create(), which trims and validates every
    field. Direct construction skips validation and is meant for tests only.
    """

    asin: str
    title: str
    author: str
    collections: tuple[str, ...] = ()
    publisher: str | None = None
    publication_date: str | None = None
    purchase_date: str | None = None
    tags: tuple[str, ...] = ()
    cover_url: str | None = None

    @classmethod
    def create(
        cls,
        *,
        asin: str,
        title: str | None,
        author: str | None,
        collections: list[str] | tuple[str, ...] = (),
        publisher: str | None = None,
        publication_date: str | None = None,
        purchase_date: str | None = None,
        tags: list[str] | tuple[str, ...] = (),
        cover_url: str | None = None,
    ) -> "BookRecord":
        """Validate inputs and build a BookRecord.

        Raises:
            InvalidAsinError: If asin is not a valid ASIN.
            BookValidationError: If title or author is missing or blank.
        """
        validate_asin(asin)

        clean_title = (title or "").strip()
        if not clean_title:
            raise BookValidationError("Title is required", field="title", value=title)

        clean_author = (author or "").strip()
        if not clean_author:
            raise BookValidationError("Author is required", field="author", value=author)

        return cls(
            asin=asin,
            title=clean_title,
            author=clean_author,
            collections=_unique_names(collections),
            publisher=_clean_optional(publisher),
            publication_date=_clean_optional(publication_date),
            purchase_date=_clean_optional(purchase_date),
            tags=_unique_names(tags),
            cover_url=_clean_optional(cover_url),
        )

    def to_dict(self) -> dict[str, object]:
        """Plain-dict form for JSON output."""
        return {
            "asin": self.asin,
            "title": self.title,
            "author": self.author,
            "collections": list(self.collections),
            "publisher": self.publisher,
            "publication_date": self.publication_date,
            "purchase_date": self.purchase_date,
            "tags": list(self.tags),
            "cover_url": self.cover_url,
        }
