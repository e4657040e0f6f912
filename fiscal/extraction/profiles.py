"""Extraction profiles: scoring weights for clean digital text vs OCR text.

Both profiles run the same pipeline. A profile only changes weights,
thresholds and the attainable confidence ceiling, so the weight tables can
be inspected and tested on their own.

Registry follows the same shape as a provider registry: profiles are looked
up by name and new ones can be registered at runtime.
"""

import logging
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class DateWeights(BaseModel):
    """Scores for issue-date candidates."""

    model_config = ConfigDict(frozen=True)

    # Base score per family
    issuance_label: float = 40.0
    generic_label: float = 20.0
    month_name: float = 15.0
    bare: float = 10.0

    # Context
    issuance_nearby: float = 30.0
    date_label_nearby: float = 10.0
    number_marker_nearby: float = 10.0
    repetition: float = 5.0
    max_repetitions: int = 3
    due_date_nearby: float = -50.0
    cae_nearby: float = -40.0
    period_nearby: float = -40.0
    activity_start_nearby: float = -60.0

    # Age relative to the processing date
    max_age_days: int = 912
    too_old: float = -30.0
    max_future_days: int = 31
    future: float = -30.0


class AmountWeights(BaseModel):
    """Scores for the heuristic total-amount scan."""

    model_config = ConfigDict(frozen=True)

    minimum_total: Decimal = Decimal("100")
    tail_fraction: float = 0.30
    in_tail: float = 20.0
    total_vocabulary_on_line: float = 30.0
    currency_sign: float = 5.0
    largest_value: float = 15.0
    per_order_of_magnitude: float = 2.0


class ExtractionProfile(BaseModel):
    """Weight/threshold profile for one kind of input text.

    Attributes:
        name: Profile identifier
        dates: Date candidate weights
        amounts: Total-amount candidate weights
        max_confidence_with_total: Confidence ceiling when a total was found
        max_confidence_without_total: Confidence ceiling when it was not
    """

    model_config = ConfigDict(frozen=True)

    name: str
    dates: DateWeights = Field(default_factory=DateWeights)
    amounts: AmountWeights = Field(default_factory=AmountWeights)
    max_confidence_with_total: int = Field(100, ge=0, le=100)
    max_confidence_without_total: int = Field(90, ge=0, le=100)


DIGITAL = ExtractionProfile(
    name="digital",
    max_confidence_with_total=100,
    max_confidence_without_total=90,
)

# OCR output: nearby vocabulary is less reliable (garbled labels), so
# line-level total vocabulary and repetition carry more weight, and the
# attainable confidence is lower.
SCANNED = ExtractionProfile(
    name="scanned",
    dates=DateWeights(
        issuance_nearby=25.0,
        date_label_nearby=8.0,
        repetition=8.0,
        due_date_nearby=-45.0,
    ),
    amounts=AmountWeights(
        in_tail=15.0,
        total_vocabulary_on_line=35.0,
        currency_sign=8.0,
    ),
    max_confidence_with_total=90,
    max_confidence_without_total=80,
)


class ProfileRegistry:
    """Registry of available extraction profiles."""

    _profiles: dict[str, ExtractionProfile] = {
        "digital": DIGITAL,
        "scanned": SCANNED,
    }

    @classmethod
    def register(cls, profile: ExtractionProfile) -> None:
        """Register (or replace) a profile under its name."""
        cls._profiles[profile.name.lower()] = profile
        logger.info(f"Registered extraction profile: {profile.name}")

    @classmethod
    def get(cls, name: str) -> ExtractionProfile:
        """Get profile by name.

        Raises:
            ValueError: If profile not found in registry
        """
        key = name.lower()
        if key not in cls._profiles:
            available = ", ".join(cls._profiles.keys())
            raise ValueError(
                f"Unknown extraction profile: '{name}'. " f"Available profiles: {available}"
            )
        return cls._profiles[key]

    @classmethod
    def list_profiles(cls) -> list[str]:
        return list(cls._profiles.keys())
