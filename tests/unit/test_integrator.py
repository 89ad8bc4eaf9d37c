# ABOUTME: Unit tests for merging XML books with collection data.
# ABOUTME: Covers first-wins deduplication, collection lookup, and collection normalization.

import math

import pytest

from kindlecat.core.integrator import (
    build_collection_lookup,
    integrate,
    normalize_collection,
)
from kindlecat.db.mapping import Association, CollectionRecord
from kindlecat.errors import BookValidationError
from kindlecat.metadata.types import RawBookMetadata

ROSE = "B000000001"
DUNE = "B000000002"
NEUROMANCER = "B000000003"


def _collections() -> list[CollectionRecord]:
    return [
        CollectionRecord(id="c1", name="Fiction", book_count=2),
        CollectionRecord(id="c2", name="Favorites", book_count=1),
    ]


class TestBuildCollectionLookup:
    """Tests for build_collection_lookup."""

    def test_maps_asins_to_names_in_association_order(self) -> None:
        lookup = build_collection_lookup(
            _collections(),
            [Association("c2", ROSE), Association("c1", ROSE), Association("c1", DUNE)],
        )
        assert lookup == {ROSE: ["Favorites", "Fiction"], DUNE: ["Fiction"]}

    def test_unknown_collection_ids_are_ignored(self) -> None:
        lookup = build_collection_lookup(_collections(), [Association("nope", ROSE)])
        assert lookup == {}

    def test_repeated_association_is_listed_once(self) -> None:
        lookup = build_collection_lookup(
            _collections(), [Association("c1", ROSE), Association("c1", ROSE)]
        )
        assert lookup == {ROSE: ["Fiction"]}


class TestIntegrate:
    """Tests for integrate."""

    def test_first_occurrence_wins(self) -> None:
        raw = [
            RawBookMetadata(asin=ROSE, title="First Title", author="A"),
            RawBookMetadata(asin=DUNE, title="Dune", author="Frank Herbert"),
            RawBookMetadata(asin=ROSE, title="Second Title", author="B"),
        ]
        outcome = integrate(raw, [], [])
        assert [b.asin for b in outcome.books] == [ROSE, DUNE]
        assert outcome.books[0].title == "First Title"
        assert outcome.duplicate_count == 1

    def test_repeated_runs_give_equal_results(self) -> None:
        raw = [
            RawBookMetadata(asin=ROSE, title="Rose", author="Eco"),
            RawBookMetadata(asin=ROSE, title="Rose again", author="Eco"),
        ]
        associations = [Association("c1", ROSE)]
        first = integrate(raw, _collections(), associations)
        second = integrate(raw, _collections(), associations)
        assert first.books == second.books
        assert first.collections == second.collections

    def test_doubled_input_gives_same_books(self) -> None:
        """Feeding the list twice over keeps only the first copy of each ASIN."""
        raw = [
            RawBookMetadata(asin=ROSE, title="Rose", author="Eco"),
            RawBookMetadata(asin=DUNE, title="Dune", author="Frank Herbert"),
            RawBookMetadata(asin=NEUROMANCER, title="Neuromancer", author="William Gibson"),
        ]
        associations = [Association("c1", ROSE), Association("c2", DUNE)]

        once = integrate(raw, _collections(), associations)
        doubled = integrate(raw + raw, _collections(), associations)

        assert doubled.books == once.books
        assert doubled.duplicate_count == len(raw)
        assert once.duplicate_count == 0

    def test_books_carry_collection_names(self) -> None:
        raw = [RawBookMetadata(asin=ROSE, title="Rose", author="Eco")]
        outcome = integrate(raw, _collections(), [Association("c1", ROSE)])
        assert outcome.books[0].collections == ("Fiction",)

    def test_book_in_unknown_collection_gets_no_collections(self) -> None:
        raw = [RawBookMetadata(asin=ROSE, title="Rose", author="Eco")]
        outcome = integrate(raw, _collections(), [Association("missing", ROSE)])
        assert outcome.books[0].collections == ()
        assert outcome.invalid_count == 0

    def test_book_without_collections_is_kept(self) -> None:
        raw = [RawBookMetadata(asin=ROSE, title="Rose", author="Eco")]
        outcome = integrate(raw, _collections(), [])
        assert len(outcome.books) == 1

    def test_invalid_record_is_counted_not_fatal(self) -> None:
        raw = [
            RawBookMetadata(asin="bad", title="Bad", author="X"),
            RawBookMetadata(asin=DUNE, title="   ", author="X"),
            RawBookMetadata(asin=ROSE, title="Rose", author="Eco"),
        ]
        outcome = integrate(raw, [], [])
        assert [b.asin for b in outcome.books] == [ROSE]
        assert outcome.invalid_count == 2
        assert len(outcome.errors) == 2

    def test_invalid_first_occurrence_does_not_block_a_later_valid_one(self) -> None:
        raw = [
            RawBookMetadata(asin=ROSE, title="  ", author="Eco"),
            RawBookMetadata(asin=ROSE, title="Rose", author="Eco"),
        ]
        outcome = integrate(raw, [], [])
        assert [b.title for b in outcome.books] == ["Rose"]
        assert outcome.duplicate_count == 0

    def test_blank_author_falls_back_to_unknown(self) -> None:
        raw = [RawBookMetadata(asin=ROSE, title="Rose", author="")]
        outcome = integrate(raw, [], [])
        assert outcome.books[0].author == "Unknown"

    def test_collections_are_normalized(self) -> None:
        collections = [
            CollectionRecord(id="c1", name=" Fiction ", book_count=-3),
            CollectionRecord(id="  ", name="No id"),
        ]
        outcome = integrate([], collections, [])
        assert outcome.collections == [CollectionRecord(id="c1", name="Fiction", book_count=0)]
        assert len(outcome.errors) == 1

    def test_records_timings(self) -> None:
        outcome = integrate([RawBookMetadata(asin=ROSE, title="Rose")], [], [])
        assert outcome.merge_ms >= 0
        assert outcome.validation_ms >= 0


class TestNormalizeCollection:
    """Tests for normalize_collection."""

    @pytest.mark.parametrize(
        ("raw_count", "expected"),
        [(5, 5), (2.7, 2), (-1, 0), (math.nan, 0), (math.inf, 0), ("7", 0), (None, 0), (True, 0)],
    )
    def test_book_count_coercion(self, raw_count: object, expected: int) -> None:
        record = CollectionRecord(id="c1", name="Fiction", book_count=raw_count)  # type: ignore[arg-type]
        assert normalize_collection(record).book_count == expected

    def test_missing_name_raises(self) -> None:
        with pytest.raises(BookValidationError) as exc_info:
            normalize_collection(CollectionRecord(id="c1", name=""))
        assert exc_info.value.field == "name"

    def test_blank_last_updated_becomes_none(self) -> None:
        record = CollectionRecord(id="c1", name="Fiction", last_updated="  ")
        assert normalize_collection(record).last_updated is None
