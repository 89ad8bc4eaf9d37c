# ABOUTME: Extraction of book metadata from the Kindle KindleSyncMetadataCache.xml file.
# ABOUTME: Defensive parser: bad elements are skipped and counted, only whole-file problems raise.

import logging
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from kindlecat.config import BATCH_SIZE, MAX_XML_SIZE, SYNC_TARGET_MS
from kindlecat.core.validation import validate_source_file
from kindlecat.errors import FileValidationError, MalformedDocumentError
from kindlecat.metadata.asin import is_valid_asin
from kindlecat.metadata.types import (
    UNKNOWN_AUTHOR,
    AnnotatedText,
    BookOrigin,
    PlainText,
    RawBookMetadata,
    TextNode,
    flatten_text,
)

logger = logging.getLogger(__name__)

_PROGRESS_THRESHOLD = 1000
_PROGRESS_EVERY = 500


@dataclass
class XmlParseStatistics:
    """Counts and timings for one XML extraction run.

    error_count is derived: every element that was seen but not extracted.
    """

    total_books: int = 0
    success_count: int = 0
    processing_ms: float = 0.0
    file_size_bytes: int = 0
    sync_time: str | None = None
    cache_version: str | None = None
    diagnostics: list[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return self.total_books - self.success_count


@dataclass
class XmlParseResult:
    """Books extracted from the XML cache plus run statistics."""

    books: list[RawBookMetadata]
    statistics: XmlParseStatistics


def _child_text(element: ET.Element, tag: str) -> str | None:
    """Trimmed text of a direct child, or None if absent or blank."""
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    text = child.text.strip()
    return text or None


def _to_text_node(element: ET.Element) -> TextNode:
    """Wrap an element as PlainText or AnnotatedText depending on its attributes."""
    text = element.text or ""
    if "pronunciation" in element.attrib:
        return AnnotatedText(text=text, pronunciation=element.attrib["pronunciation"])
    return PlainText(text=text)


def _parse_date(value: str | None) -> str | None:
    """Return value if it parses as an ISO-8601 date/datetime, else None."""
    if value is None:
        return None
    candidate = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        datetime.fromisoformat(candidate)
    except ValueError:
        logger.warning("Dropping invalid date value: %r", value)
        return None
    return value


def _extract_authors(element: ET.Element) -> tuple[str | None, str | None]:
    """Join zero, one, or many <authors>/<author> entries into comma-separated strings.

    Returns:
        (author, pronunciation) where either may be None. Pronunciations are only
        collected for authors that have a non-empty name.
    """
    authors_el = element.find("authors")
    if authors_el is None:
        return None, None

    names: list[str] = []
    pronunciations: list[str] = []
    for author_el in authors_el.findall("author"):
        name, pronunciation = flatten_text(_to_text_node(author_el))
        if not name:
            continue
        names.append(name)
        if pronunciation:
            pronunciations.append(pronunciation)

    return (
        ", ".join(names) if names else None,
        ", ".join(pronunciations) if pronunciations else None,
    )


def _extract_origin(element: ET.Element) -> BookOrigin | None:
    """Origin type of the first <origins>/<origin>, if it is a known tag."""
    origin_el = element.find("origins/origin")
    if origin_el is None:
        return None
    return BookOrigin.parse(_child_text(origin_el, "type"))


def _extract_element(element: ET.Element) -> tuple[RawBookMetadata | None, str | None]:
    """Extract one <meta_data> element.

    Returns:
        (record, None) on success, or (None, reason) when the element is skipped.
    """
    asin = _child_text(element, "ASIN")
    if asin is None:
        return None, "missing ASIN"
    if not is_valid_asin(asin):
        return None, f"invalid ASIN {asin!r}"

    title_el = element.find("title")
    if title_el is None:
        return None, f"{asin}: missing title"
    title, title_pronunciation = flatten_text(_to_text_node(title_el))
    if not title:
        return None, f"{asin}: empty title"

    author, author_pronunciation = _extract_authors(element)

    record = RawBookMetadata(
        asin=asin,
        title=title,
        title_pronunciation=title_pronunciation,
        author=author or UNKNOWN_AUTHOR,
        author_pronunciation=author_pronunciation,
        publisher=_child_text(element, "publishers/publisher"),
        publication_date=_parse_date(_child_text(element, "publication_date")),
        purchase_date=_parse_date(_child_text(element, "purchase_date")),
        content_type=_child_text(element, "cde_contenttype"),
        mime_type=_child_text(element, "content_type"),
        origin=_extract_origin(element),
    )
    return record, None


def extract_books(
    elements: list[ET.Element],
    statistics: XmlParseStatistics,
    *,
    batch_size: int = BATCH_SIZE,
) -> list[RawBookMetadata]:
    """Fold over <meta_data> elements, collecting records and skip reasons.

    Elements are handled in batches of batch_size so progress can be logged
    on large libraries. Output order always matches input order.
    """
    books: list[RawBookMetadata] = []
    total = len(elements)
    statistics.total_books += total

    for start in range(0, total, batch_size):
        for element in elements[start : start + batch_size]:
            record, problem = _extract_element(element)
            if record is None:
                logger.warning("Skipping metadata element: %s", problem)
                statistics.diagnostics.append(problem or "unknown problem")
                continue
            books.append(record)

        done = min(start + batch_size, total)
        if total > _PROGRESS_THRESHOLD and done % _PROGRESS_EVERY == 0:
            logger.info("Processed %d/%d metadata elements", done, total)

    statistics.success_count += len(books)
    return books


class KindleXmlParser:
    """Reads KindleSyncMetadataCache.xml into RawBookMetadata records.

    The parser only accepts files inside expected_dir with a .xml suffix and
    at most max_file_size bytes.
    """

    def __init__(
        self,
        expected_dir: Path,
        *,
        max_file_size: int = MAX_XML_SIZE,
        batch_size: int = BATCH_SIZE,
    ) -> None:
        self._expected_dir = expected_dir
        self._max_file_size = max_file_size
        self._batch_size = batch_size

    def parse(self, path: Path) -> XmlParseResult:
        """Validate, read, and extract every book from the XML cache.

        Raises:
            FileValidationError: If the file fails pre-parse checks or cannot be read.
            MalformedDocumentError: If the content is not UTF-8 or not well-formed.
        """
        start = time.perf_counter()
        logger.info("Parsing Kindle metadata cache: %s", path)

        stats = validate_source_file(
            path,
            expected_dir=self._expected_dir,
            suffix=".xml",
            max_size=self._max_file_size,
        )

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedDocumentError(
                f"Metadata cache is not valid UTF-8: {path}", path=str(path)
            ) from exc
        except OSError as exc:
            raise FileValidationError(f"Cannot read {path}: {exc}", path) from exc

        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise MalformedDocumentError(
                f"Metadata cache is not well-formed XML: {path}: {exc}",
                path=str(path),
                position=getattr(exc, "position", None),
            ) from exc

        if root.tag != "response":
            raise MalformedDocumentError(
                f"Unexpected root element <{root.tag}> in {path}", path=str(path)
            )

        statistics = XmlParseStatistics(
            file_size_bytes=stats.st_size,
            sync_time=_child_text(root, "sync_time"),
            cache_version=_child_text(root, "cache_metadata/version"),
        )

        update_list = root.find("add_update_list")
        if update_list is None:
            logger.warning("No add_update_list in %s; no books found", path)
            elements: list[ET.Element] = []
        else:
            elements = update_list.findall("meta_data")

        books = extract_books(elements, statistics, batch_size=self._batch_size)

        statistics.processing_ms = (time.perf_counter() - start) * 1000
        if statistics.processing_ms > SYNC_TARGET_MS:
            logger.warning(
                "XML parsing exceeded target: %.0fms > %dms",
                statistics.processing_ms,
                SYNC_TARGET_MS,
            )

        logger.info(
            "Extracted %d/%d books from %s in %.0fms",
            statistics.success_count,
            statistics.total_books,
            path.name,
            statistics.processing_ms,
        )
        return XmlParseResult(books=books, statistics=statistics)
