"""
Tests for catalog matching.
"""

from reconciler.matcher import CatalogMatcher
from reconciler.models import MatchStrategy


class TestCatalogMatcher:
    """Test cases for CatalogMatcher."""

    def test_identifier_match_selects_overlapping_result(self, make_book, make_result):
        book = make_book(all_isbns=["111", "222"])
        results = [
            make_result("A", title="Something Else", isbns=["999"]),
            make_result("B", title="Another Title", isbns=["222"]),
        ]

        decision = CatalogMatcher().match(book, results)

        assert decision.matched
        assert decision.result.id == "B"
        assert decision.strategy == MatchStrategy.IDENTIFIER

    def test_identifier_match_prefers_provider_order(self, make_book, make_result):
        book = make_book(all_isbns=["111", "222"])
        results = [
            make_result("first", isbns=["222"]),
            make_result("second", isbns=["111"]),
        ]

        decision = CatalogMatcher().match(book, results)

        assert decision.result.id == "first"

    def test_identifier_match_beats_title_match(self, make_book, make_result):
        book = make_book(title="The Doors of Stone", all_isbns=["9780756404741"])
        results = [
            make_result("title-only", title="Doors of Stone"),
            make_result("by-isbn", title="Doors of Stone (Kingkiller 3)", isbns=["978-0-7564-0474-1"]),
        ]

        decision = CatalogMatcher().match(book, results)

        assert decision.result.id == "by-isbn"
        assert decision.strategy == MatchStrategy.IDENTIFIER

    def test_identifier_match_reads_typed_identifiers(self, make_book):
        from catalog.models import CatalogSearchResult

        book = make_book(all_isbns=["080442957X"])
        result = CatalogSearchResult.model_validate({
            "id": 12345,
            "title": "Unrelated",
            "formats": [{"id": "audiobook", "identifiers": [
                {"type": "ASIN", "value": "080442957X-not"},
                {"type": "ISBN", "value": "0-8044-2957-x"},
            ]}],
            "isAvailable": False,
            "isHoldable": True,
        })

        decision = CatalogMatcher().match(book, [result])

        assert decision.result.id == "12345"
        assert decision.strategy == MatchStrategy.IDENTIFIER

    def test_title_match_without_identifiers(self, make_book, make_result):
        book = make_book(title="The Doors of Stone", all_isbns=[])
        results = [make_result("A", title="Doors of Stone")]

        decision = CatalogMatcher().match(book, results)

        assert decision.matched
        assert decision.result.id == "A"
        assert decision.strategy == MatchStrategy.NORMALIZED_TITLE

    def test_title_match_when_identifiers_do_not_overlap(self, make_book, make_result):
        book = make_book(title="Vera, or Faith", all_isbns=["111"])
        results = [
            make_result("A", title="Vera", isbns=["999"]),
            make_result("B", title="Vera Or Faith", isbns=["888"]),
        ]

        decision = CatalogMatcher().match(book, results)

        assert decision.result.id == "B"
        assert decision.strategy == MatchStrategy.NORMALIZED_TITLE

    def test_primary_isbn_alone_is_not_used(self, make_book, make_result):
        book = make_book(title="Some Book", isbn="111", all_isbns=[])
        results = [make_result("A", title="Different Book", isbns=["111"])]

        decision = CatalogMatcher().match(book, results)

        assert not decision.matched

    def test_unmatched_never_falls_back_to_first_result(self, make_book, make_result):
        book = make_book(title="The Doors of Stone", all_isbns=["111"])
        results = [
            make_result("A", title="The Wise Man's Fear", isbns=["999"]),
            make_result("B", title="The Name of the Wind"),
        ]

        decision = CatalogMatcher().match(book, results)

        assert not decision.matched
        assert decision.result is None
        assert decision.strategy is None

    def test_empty_results(self, make_book):
        decision = CatalogMatcher().match(make_book(), [])

        assert not decision.matched
