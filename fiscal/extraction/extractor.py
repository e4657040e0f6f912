"""Field extraction pipeline.

One pipeline serves both digital text-layer output and OCR output; the
``ExtractionProfile`` passed in only changes weights and confidence
ceilings.

Steps per document:
1. Tax ID: every checksum-valid CUIT, ranked by issuer/recipient context
2. Issue date: every date mention, ranked by label and surrounding vocabulary
3. Document type: numeric code first, text patterns as fallback
4. Document number: prioritized (letter, point of sale, sequence) patterns
5. Total: labeled total first, heuristic amount scan as fallback
6. Confidence from the required fields present

Ambiguity never raises. Each field resolves to a single winner and the
losing candidates are logged at DEBUG with their score rationale.
"""

import logging
from datetime import date

from fiscal.doctypes.classifier import DocumentTypeClassifier
from fiscal.doctypes.table import DocumentKind, DocumentTypeTable
from fiscal.extraction.amounts import find_total
from fiscal.extraction.confidence import ConfidenceAggregator, ConfidenceConfig
from fiscal.extraction.dates import find_date_candidates
from fiscal.extraction.numbers import find_document_number
from fiscal.extraction.profiles import ExtractionProfile, ProfileRegistry
from fiscal.extraction.schema import ExtractionResult
from fiscal.identifiers.cuit import (
    DEFAULT_CONTEXT_RULES,
    classify_holder,
    extract_candidates_with_context,
)
from fiscal.shared.config import Settings
from fiscal.shared.metrics import (
    extraction_confidence,
    extraction_documents_total,
    extraction_missing_fields_total,
)
from fiscal.shared.scoring import KeywordRule

logger = logging.getLogger(__name__)


class FieldExtractor:
    """Extracts invoice fields from plain document text.

    Stateless between calls: one instance can be shared across threads and
    documents.

    Attributes:
        classifier: Document-type classifier (carries the code table)
        aggregator: Confidence aggregator
        min_text_length: Non-blank characters required to attempt extraction
        default_profile: Profile name used when ``extract`` gets none
        tax_id_rules: Keyword rule table for CUIT context scoring
    """

    def __init__(
        self,
        classifier: DocumentTypeClassifier | None = None,
        aggregator: ConfidenceAggregator | None = None,
        min_text_length: int = 50,
        default_profile: str = "digital",
        tax_id_rules: tuple[KeywordRule, ...] = DEFAULT_CONTEXT_RULES,
    ) -> None:
        self.classifier = classifier or DocumentTypeClassifier()
        self.aggregator = aggregator or ConfidenceAggregator()
        self.min_text_length = min_text_length
        self.default_profile = default_profile
        self.tax_id_rules = tax_id_rules

    @classmethod
    def from_settings(cls, settings: Settings) -> "FieldExtractor":
        """Build an extractor wired with the configured table and thresholds."""
        table = DocumentTypeTable.load(settings.doctype_table_path)
        return cls(
            classifier=DocumentTypeClassifier(table),
            aggregator=ConfidenceAggregator(ConfidenceConfig.from_settings(settings)),
            min_text_length=settings.min_text_length,
            default_profile=settings.default_profile,
        )

    def _resolve_profile(self, profile: str | ExtractionProfile | None) -> ExtractionProfile:
        if isinstance(profile, ExtractionProfile):
            return profile
        return ProfileRegistry.get(profile or self.default_profile)

    def extract(
        self,
        text: str,
        profile: str | ExtractionProfile | None = None,
        reference_date: date | None = None,
    ) -> ExtractionResult:
        """Extract fields from one document's text.

        Args:
            text: Plain document text (text layer or OCR output)
            profile: Profile name ("digital", "scanned") or profile object
            reference_date: Processing date for date-age scoring (defaults to today)

        Returns:
            ExtractionResult; insufficient text yields a zero-confidence result

        Raises:
            TypeError: If text is not a string
            ValueError: If the profile name is not registered
        """
        if not isinstance(text, str):
            raise TypeError(f"text must be str, got {type(text).__name__}")

        active = self._resolve_profile(profile)

        content_length = len("".join(text.split()))
        if content_length < self.min_text_length:
            logger.warning(
                f"Insufficient text for extraction ({content_length} chars, "
                f"minimum {self.min_text_length})"
            )
            extraction_documents_total.labels(
                profile=active.name, outcome="insufficient_text"
            ).inc()
            empty = self.aggregator.empty()
            return ExtractionResult(
                confidence=empty.confidence,
                success=empty.success,
                requires_review=empty.requires_review,
                profile=active.name,
                errors=("Insufficient text for extraction",),
            )

        warnings: list[str] = []
        rationale: list[tuple[str, str]] = []

        # 1. Tax ID
        tax_id = None
        tax_candidates = extract_candidates_with_context(text, self.tax_id_rules)
        if tax_candidates:
            winner = tax_candidates[0]
            tax_id = winner.value
            rationale.append(("tax_id", winner.rationale))
            if len(tax_candidates) > 1:
                logger.debug(
                    f"Tax ID {tax_id} chosen over "
                    f"{[(c.value, c.score) for c in tax_candidates[1:]]}"
                )

        # 2. Issue date
        issue_date = None
        date_candidates = find_date_candidates(
            text, active.dates, reference_date or date.today()
        )
        if date_candidates:
            issue_date = date_candidates[0].value
            rationale.append(("issue_date", date_candidates[0].rationale))

        # 3. Document type
        type_match = self.classifier.extract_with_fallback(text)
        document_type = type_match.document_type if type_match else None
        method = type_match.method if type_match else None

        # 4. Document number
        point_of_sale = None
        sequence_number = None
        number = find_document_number(text)
        if number is not None:
            point_of_sale = number.point_of_sale
            sequence_number = number.sequence_number
            rationale.append(("document_number", f"pattern_{number.pattern_index}"))
            if number.letter and document_type and number.letter != document_type.letter:
                message = (
                    f"Number letter {number.letter} conflicts with document type "
                    f"{document_type.description}; keeping the document type"
                )
                logger.warning(message)
                warnings.append(message)
            elif number.letter and document_type is None:
                document_type = self.classifier.table.reverse(number.letter, DocumentKind.INVOICE)
                if document_type is not None:
                    method = "TEXT"
                    logger.info(f"Document type from number letter: {document_type.description}")

        # 5. Total
        total = None
        total_field = find_total(text, active.amounts)
        if total_field is not None:
            total = total_field.value
            rationale.append(("total", total_field.rationale))
        else:
            warnings.append("Total amount not found")

        # 6. Confidence
        score = self.aggregator.aggregate(
            {
                "tax_id": tax_id,
                "issue_date": issue_date,
                "document_type": document_type,
                "point_of_sale": point_of_sale,
                "sequence_number": sequence_number,
            },
            total,
            active,
        )
        errors = tuple(f"Missing required field: {name}" for name in score.missing)
        for name in score.missing:
            extraction_missing_fields_total.labels(field=name).inc()

        outcome = "success" if score.success else "low_confidence"
        extraction_documents_total.labels(profile=active.name, outcome=outcome).inc()
        extraction_confidence.labels(profile=active.name).observe(score.confidence)

        type_label = document_type.description if document_type else None
        logger.info(
            f"Extracted ({active.name}): tax_id={tax_id} date={issue_date} "
            f"type={type_label} pos={point_of_sale} seq={sequence_number} total={total} "
            f"confidence={score.confidence}"
        )

        return ExtractionResult(
            tax_id=tax_id,
            holder_type=classify_holder(tax_id) if tax_id else None,
            issue_date=issue_date,
            document_type=document_type,
            classification_method=method,
            point_of_sale=point_of_sale,
            sequence_number=sequence_number,
            total=total,
            confidence=score.confidence,
            success=score.success,
            requires_review=score.requires_review,
            profile=active.name,
            errors=errors,
            warnings=tuple(warnings),
            rationale=tuple(rationale),
        )


def create_extractor(settings: Settings | None = None) -> FieldExtractor:
    """Factory function to create a configured extractor.

    Example:
        >>> extractor = create_extractor(Settings(default_profile="scanned"))
        >>> result = extractor.extract(ocr_text)
    """
    settings = settings or Settings()
    extractor = FieldExtractor.from_settings(settings)
    logger.info(f"Created field extractor (default profile: {extractor.default_profile})")
    return extractor
