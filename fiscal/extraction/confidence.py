"""Confidence aggregation.

Confidence is the share of the five required fields that were found,
scaled by the profile's ceiling (which is higher when a total was found):

    confidence = present / 5 * (max_with_total if has_total else max_without_total)
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fiscal.extraction.profiles import ExtractionProfile
from fiscal.shared.config import Settings

REQUIRED_FIELDS = ("tax_id", "issue_date", "document_type", "point_of_sale", "sequence_number")


class ConfidenceConfig(BaseModel):
    """Decision thresholds applied to the aggregated confidence."""

    model_config = ConfigDict(frozen=True)

    success_threshold: int = Field(50, ge=0, le=100)
    review_threshold: int = Field(80, ge=0, le=100)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConfidenceConfig":
        return cls(
            success_threshold=settings.success_threshold,
            review_threshold=settings.review_threshold,
        )


class ConfidenceScore(BaseModel):
    """Aggregated confidence for one document."""

    model_config = ConfigDict(frozen=True)

    confidence: int
    success: bool
    requires_review: bool
    missing: tuple[str, ...]


def _present(value: Any) -> bool:
    return value is not None and value != ""


class ConfidenceAggregator:
    """Turns field presence into a 0-100 confidence and a success flag."""

    def __init__(self, config: ConfidenceConfig | None = None) -> None:
        self.config = config or ConfidenceConfig()

    def aggregate(
        self,
        fields: Mapping[str, Any],
        total: Any,
        profile: ExtractionProfile,
    ) -> ConfidenceScore:
        """Compute confidence from the required fields and the optional total.

        Args:
            fields: Field name -> extracted value (None when missing); must
                contain every name in ``REQUIRED_FIELDS``
            total: Extracted total or None
            profile: Profile providing the confidence ceilings
        """
        missing = tuple(name for name in REQUIRED_FIELDS if not _present(fields.get(name)))
        present = len(REQUIRED_FIELDS) - len(missing)
        ceiling = (
            profile.max_confidence_with_total
            if _present(total)
            else profile.max_confidence_without_total
        )
        confidence = round(present / len(REQUIRED_FIELDS) * ceiling)
        return ConfidenceScore(
            confidence=confidence,
            success=confidence > self.config.success_threshold,
            requires_review=confidence < self.config.review_threshold,
            missing=missing,
        )

    def empty(self) -> ConfidenceScore:
        """Zero-confidence score for documents that could not be read."""
        return ConfidenceScore(
            confidence=0,
            success=False,
            requires_review=True,
            missing=REQUIRED_FIELDS,
        )
