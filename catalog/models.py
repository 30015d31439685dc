"""
Pydantic models for catalog search results.
Parsing is strict: a result missing a required field fails validation instead of
carrying undefined values into matching.
"""

from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, Field, field_validator

from tracker.models import normalize_identifier


def _coerce_id(v):
    """Catalog ids sometimes arrive as numbers."""
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class CatalogIdentifier(BaseModel):
    """Typed identifier attached to a catalog format."""
    type: str = Field(..., description="Identifier scheme, e.g. ISBN")
    value: str = Field(..., description="Identifier value")

    @field_validator('value', mode='before')
    @classmethod
    def validate_value(cls, v):
        return _coerce_id(v)


class CatalogFormat(BaseModel):
    """One format (ebook, audiobook, ...) of a catalog entry."""
    id: Optional[str] = Field(None, description="Format identifier")
    isbn: Optional[str] = Field(None, description="Edition identifier for this format")
    identifiers: List[CatalogIdentifier] = Field(default_factory=list)

    @field_validator('isbn', mode='before')
    @classmethod
    def validate_isbn(cls, v):
        return _coerce_id(v)

    def identifier_values(self) -> Set[str]:
        """Normalized edition identifiers carried by this format."""
        values = set()
        if self.isbn:
            values.add(normalize_identifier(self.isbn))
        for identifier in self.identifiers:
            if identifier.type.upper() == "ISBN":
                values.add(normalize_identifier(identifier.value))
        values.discard("")
        return values


class CatalogSearchResult(BaseModel):
    """
    One entry returned by a catalog query.
    """
    id: str = Field(..., min_length=1, description="Provider-assigned entry id")
    title: str = Field(..., description="Entry title")
    formats: List[CatalogFormat] = Field(default_factory=list)
    is_available: bool = Field(..., alias="isAvailable")
    is_holdable: bool = Field(..., alias="isHoldable")
    available_copies: int = Field(default=0, ge=0, alias="availableCopies")
    holds_count: int = Field(default=0, ge=0, alias="holdsCount")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @field_validator('id', mode='before')
    @classmethod
    def validate_id(cls, v):
        return _coerce_id(v)

    @field_validator('formats', mode='before')
    @classmethod
    def validate_formats(cls, v):
        """Absent formats mean no identifiers."""
        if v is None:
            return []
        return v

    @field_validator('available_copies', 'holds_count', mode='before')
    @classmethod
    def validate_counts(cls, v):
        """Absent counts mean zero."""
        if v is None:
            return 0
        return v

    def identifiers(self) -> Set[str]:
        """All normalized identifiers across the entry's formats."""
        values: Set[str] = set()
        for catalog_format in self.formats:
            values |= catalog_format.identifier_values()
        return values

    @classmethod
    def parse_items(cls, payload: Dict[str, Any]) -> List["CatalogSearchResult"]:
        """
        Parse a search response body.

        An absent or null items array means no results.

        Raises:
            pydantic.ValidationError: if any item is malformed
        """
        items = payload.get("items") or []
        return [cls.model_validate(item) for item in items]
