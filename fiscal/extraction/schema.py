"""Extraction result models.

An ``ExtractionResult`` is created fresh per document and never mutated
afterwards; it is the immutable value handed to reconciliation.
"""

from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from fiscal.doctypes.table import DocumentKind, DocumentTypeCode
from fiscal.extraction.numbers import format_full_number
from fiscal.identifiers.cuit import HolderType, TaxId
from fiscal.shared.scoring import ExtractedField

__all__ = [
    "DocumentKind",
    "DocumentTypeCode",
    "ExtractedField",
    "ExtractionResult",
]


class ExtractionResult(BaseModel):
    """Structured fields extracted from one document.

    Attributes:
        tax_id: Issuer CUIT in canonical ``PP-DDDDDDDD-C`` form
        holder_type: Natural/legal person, from the CUIT prefix
        issue_date: Issuance date
        document_type: Receipt type (code, letter, kind)
        classification_method: Whether the type came from a numeric code or text
        point_of_sale: Issuing terminal number
        sequence_number: Per-point-of-sale counter
        total: Total amount
        confidence: Overall confidence (0-100)
        success: Whether confidence exceeds the success threshold
        requires_review: Whether the document must go to manual review
        profile: Extraction profile used
        errors: One message per required field that stayed empty
        warnings: Non-fatal notes (missing optional total, conflicts)
        rationale: (field, winning candidate's score rationale) pairs
    """

    model_config = ConfigDict(frozen=True)

    tax_id: TaxId | None = None
    holder_type: HolderType | None = None
    issue_date: date | None = None
    document_type: DocumentTypeCode | None = None
    classification_method: Literal["CODE", "TEXT"] | None = None
    point_of_sale: int | None = Field(None, ge=0)
    sequence_number: int | None = Field(None, ge=0)
    total: Decimal | None = None

    confidence: int = Field(0, ge=0, le=100)
    success: bool = False
    requires_review: bool = True
    profile: str = "digital"
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    rationale: tuple[tuple[str, str], ...] = ()

    @property
    def letter(self) -> str | None:
        return self.document_type.letter if self.document_type else None

    def reason_for(self, field: str) -> str | None:
        """Score rationale recorded for ``field``, if it was extracted."""
        return next((reason for name, reason in self.rationale if name == field), None)

    @property
    def full_number(self) -> str | None:
        """Canonical ``A-00001-00000123`` number, when all parts are known."""
        if self.letter is None or self.point_of_sale is None or self.sequence_number is None:
            return None
        return format_full_number(self.letter, self.point_of_sale, self.sequence_number)
