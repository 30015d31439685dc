"""
Catalog matching for tracked books.

Identifier matching is tried first because catalog editions and tracked
editions often differ in title formatting but rarely in identifier. Title
matching is the fallback for books with no known identifiers. There is no
further fallback: when neither strategy finds an entry the decision is
unmatched, never the first result.
"""

from typing import Optional, Sequence

import structlog

from catalog.models import CatalogSearchResult
from reconciler.models import MatchDecision, MatchStrategy
from reconciler.normalizer import normalize_title
from tracker.models import TrackedBook

logger = structlog.get_logger(__name__)


class CatalogMatcher:
    """Selects the catalog entry corresponding to a tracked book."""

    def __init__(self):
        self.logger = logger.bind(component="catalog_matcher")

    def match(self, book: TrackedBook, results: Sequence[CatalogSearchResult]) -> MatchDecision:
        """
        Pick the first result that shares an identifier with the book, else the
        first whose normalized title equals the book's.

        Args:
            book: Tracked book
            results: Catalog results in provider order

        Returns:
            MatchDecision carrying the chosen result and strategy, or unmatched
        """
        result = self._match_by_identifier(book, results)
        if result is not None:
            self.logger.debug("Identifier match found", title=book.title, catalog_id=result.id)
            return MatchDecision.match(result, MatchStrategy.IDENTIFIER)

        result = self._match_by_title(book, results)
        if result is not None:
            self.logger.debug("Title match found", title=book.title, catalog_id=result.id)
            return MatchDecision.match(result, MatchStrategy.NORMALIZED_TITLE)

        self.logger.debug("No confident match", title=book.title, results=len(results))
        return MatchDecision.unmatched()

    def _match_by_identifier(
        self,
        book: TrackedBook,
        results: Sequence[CatalogSearchResult],
    ) -> Optional[CatalogSearchResult]:
        identifiers = book.alternate_identifiers()
        if not identifiers:
            return None
        for result in results:
            if identifiers & result.identifiers():
                return result
        return None

    def _match_by_title(
        self,
        book: TrackedBook,
        results: Sequence[CatalogSearchResult],
    ) -> Optional[CatalogSearchResult]:
        key = normalize_title(book.title)
        for result in results:
            if normalize_title(result.title) == key:
                return result
        return None
