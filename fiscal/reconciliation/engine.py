"""Reconciliation of extracted documents against expected invoices.

Decision policy:
- An exact 4-tuple key match on a pending record is always accepted.
- Otherwise pending records for the same issuer are scored on agreeing
  fields; the best one is offered as a suggestion when its score reaches
  the suggest threshold.
- Below the threshold the ranked list is returned for manual disposition.
- No candidates at all is a valid outcome, not an error.

The engine only reads the catalog; ``accept`` is the single write, and the
catalog re-checks that the record is still pending while applying it.
"""

import logging
from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fiscal.extraction.schema import ExtractionResult
from fiscal.reconciliation.catalog import (
    CandidateQuery,
    ExpectedInvoiceCatalog,
    ExpectedInvoiceRecord,
    ExpectedInvoiceStatus,
)
from fiscal.shared.config import Settings
from fiscal.shared.metrics import reconciliation_anomalies_total, reconciliation_verdicts_total

logger = logging.getLogger(__name__)


class MatchWeights(BaseModel):
    """Points contributed by each agreeing field."""

    model_config = ConfigDict(frozen=True)

    tax_id: int = Field(25, ge=0)
    sequence_number: int = Field(25, ge=0)
    point_of_sale: int = Field(15, ge=0)
    issue_date: int = Field(15, ge=0)
    letter: int = Field(10, ge=0)
    total: int = Field(10, ge=0)

    @model_validator(mode="after")
    def _check_positive(self) -> "MatchWeights":
        if self.maximum == 0:
            raise ValueError("At least one match weight must be positive")
        return self

    @property
    def maximum(self) -> int:
        return (
            self.tax_id
            + self.sequence_number
            + self.point_of_sale
            + self.issue_date
            + self.letter
            + self.total
        )


class MatchingConfig(BaseModel):
    """Thresholds and tolerances for partial matching."""

    model_config = ConfigDict(frozen=True)

    suggest_threshold: int = Field(75, ge=0, le=100)
    date_tolerance_days: int = Field(7, ge=0)
    total_tolerance_ratio: Decimal = Field(Decimal("0.10"), ge=0)
    total_tolerance_abs: Decimal = Field(Decimal("0.01"), ge=0)
    candidate_limit: int = Field(20, ge=1)
    weights: MatchWeights = Field(default_factory=MatchWeights)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MatchingConfig":
        return cls(
            suggest_threshold=settings.match_suggest_threshold,
            date_tolerance_days=settings.match_date_tolerance_days,
            total_tolerance_ratio=Decimal(str(settings.match_total_tolerance_ratio)),
            total_tolerance_abs=Decimal(str(settings.match_total_tolerance_abs)),
            candidate_limit=settings.match_candidate_limit,
        )


class MatchCandidate(BaseModel):
    """A pending record scored against an extraction."""

    model_config = ConfigDict(frozen=True)

    record: ExpectedInvoiceRecord
    score: int = Field(..., ge=0, le=100)
    matched_fields: tuple[str, ...]


class Verdict(StrEnum):
    MATCHED = "matched"
    SUGGESTED = "suggested"
    MANUAL_REVIEW = "manual_review"
    NO_MATCH = "no_match"


class ReconciliationOutcome(BaseModel):
    """Result of reconciling one extraction.

    Attributes:
        verdict: What the caller should do next
        record: Exact match or suggested record (None otherwise)
        score: Score of ``record`` (100 for an exact match)
        candidates: Ranked partial candidates, best first
        anomalies: Catalog inconsistencies found on the way
    """

    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    record: ExpectedInvoiceRecord | None = None
    score: int | None = None
    candidates: tuple[MatchCandidate, ...] = ()
    anomalies: tuple[str, ...] = ()


def decide(candidates: Sequence[MatchCandidate], suggest_threshold: int) -> Verdict:
    """Verdict for a ranked partial-candidate list (exact matches excluded)."""
    if not candidates:
        return Verdict.NO_MATCH
    if candidates[0].score >= suggest_threshold:
        return Verdict.SUGGESTED
    return Verdict.MANUAL_REVIEW


class ReconciliationEngine:
    """Matches extraction results to pending expected invoices.

    Attributes:
        catalog: Expected-invoice catalog
        config: Matching thresholds, tolerances and weights
    """

    def __init__(
        self,
        catalog: ExpectedInvoiceCatalog,
        config: MatchingConfig | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or MatchingConfig()

    def _exact_match(
        self,
        tax_id: str,
        letter: str,
        point_of_sale: int,
        sequence_number: int,
    ) -> tuple[ExpectedInvoiceRecord | None, str | None]:
        found = self.catalog.find_by_key(tax_id, letter, point_of_sale, sequence_number)
        if not found:
            return None, None
        chosen = min(found, key=lambda r: r.id)
        if len(found) == 1:
            return chosen, None

        ids = sorted(r.id for r in found)
        anomaly = (
            f"Duplicate pending expected invoices for key "
            f"({tax_id}, {letter}, {point_of_sale}, {sequence_number}): ids {ids}; "
            f"using {chosen.id}"
        )
        logger.error(anomaly)
        reconciliation_anomalies_total.labels(kind="duplicate_exact_match").inc()
        return chosen, anomaly

    def find_exact_match(
        self,
        tax_id: str,
        letter: str,
        point_of_sale: int,
        sequence_number: int,
    ) -> ExpectedInvoiceRecord | None:
        """Pending record with exactly this key.

        Duplicate pending keys are logged as an anomaly and resolved to the
        lowest record id.
        """
        record, _ = self._exact_match(tax_id, letter, point_of_sale, sequence_number)
        return record

    def find_candidates(
        self,
        tax_id: str | None,
        date_window: tuple[date, date] | None = None,
        total_window: tuple[Decimal, Decimal] | None = None,
        statuses: tuple[ExpectedInvoiceStatus, ...] | None = None,
        point_of_sale: int | None = None,
        sequence_number: int | None = None,
    ) -> list[ExpectedInvoiceRecord]:
        """Records for an issuer, optionally narrowed to date/total intervals.

        Args:
            tax_id: Issuer CUIT; when None, point of sale/sequence narrow instead
            date_window: Inclusive (from, to) issue-date interval
            total_window: Inclusive (min, max) total interval
            statuses: Status set (defaults to pending only)
            point_of_sale: Optional point-of-sale filter
            sequence_number: Optional sequence filter

        Returns:
            Records ordered by issue date descending, capped at candidate_limit
        """
        date_from, date_to = date_window if date_window else (None, None)
        total_min, total_max = total_window if total_window else (None, None)
        query = CandidateQuery(
            tax_id=tax_id,
            date_from=date_from,
            date_to=date_to,
            total_min=total_min,
            total_max=total_max,
            point_of_sale=point_of_sale,
            sequence_number=sequence_number,
            statuses=statuses or (ExpectedInvoiceStatus.PENDING,),
            limit=self.config.candidate_limit,
        )
        return self.catalog.find_candidates(query)

    def _total_within_tolerance(self, extracted: Decimal, expected: Decimal) -> bool:
        allowed = max(
            abs(expected) * self.config.total_tolerance_ratio, self.config.total_tolerance_abs
        )
        return abs(extracted - expected) <= allowed

    def score_partial_match(
        self,
        extracted: ExtractionResult,
        candidate: ExpectedInvoiceRecord,
    ) -> MatchCandidate:
        """Weighted share of agreeing fields, normalized to 0-100."""
        weights = self.config.weights
        matched: list[str] = []
        points = 0

        if extracted.tax_id is not None and extracted.tax_id == candidate.tax_id:
            matched.append("tax_id")
            points += weights.tax_id

        if extracted.issue_date is not None and candidate.issue_date is not None:
            delta = abs(extracted.issue_date - candidate.issue_date)
            if delta <= timedelta(days=self.config.date_tolerance_days):
                matched.append("issue_date")
                points += weights.issue_date

        if extracted.total is not None and candidate.total is not None:
            if self._total_within_tolerance(extracted.total, candidate.total):
                matched.append("total")
                points += weights.total

        if extracted.letter is not None and extracted.letter == candidate.letter:
            matched.append("letter")
            points += weights.letter

        if (
            extracted.point_of_sale is not None
            and extracted.point_of_sale == candidate.point_of_sale
        ):
            matched.append("point_of_sale")
            points += weights.point_of_sale

        if (
            extracted.sequence_number is not None
            and extracted.sequence_number == candidate.sequence_number
        ):
            matched.append("sequence_number")
            points += weights.sequence_number

        score = round(points * 100 / weights.maximum)
        logger.debug(f"Candidate {candidate.id}: score {score} from {matched}")
        return MatchCandidate(record=candidate, score=score, matched_fields=tuple(matched))

    def rank_candidates(self, extracted: ExtractionResult) -> list[MatchCandidate]:
        """Score every pending candidate for the extraction, best first."""
        if extracted.tax_id is not None:
            records = self.find_candidates(extracted.tax_id)
        elif extracted.point_of_sale is not None or extracted.sequence_number is not None:
            records = self.find_candidates(
                None,
                point_of_sale=extracted.point_of_sale,
                sequence_number=extracted.sequence_number,
            )
        else:
            records = []

        scored = [self.score_partial_match(extracted, record) for record in records]
        scored.sort(key=lambda c: (-c.score, c.record.id))
        return scored

    def reconcile(self, extracted: ExtractionResult) -> ReconciliationOutcome:
        """Decide what an extraction corresponds to in the catalog.

        Does not modify the catalog; see ``accept``.
        """
        anomalies: list[str] = []

        if (
            extracted.tax_id is not None
            and extracted.letter is not None
            and extracted.point_of_sale is not None
            and extracted.sequence_number is not None
        ):
            record, anomaly = self._exact_match(
                extracted.tax_id,
                extracted.letter,
                extracted.point_of_sale,
                extracted.sequence_number,
            )
            if anomaly:
                anomalies.append(anomaly)
            if record is not None:
                logger.info(f"Exact match: expected invoice {record.id} ({extracted.full_number})")
                return self._finish(
                    ReconciliationOutcome(
                        verdict=Verdict.MATCHED,
                        record=record,
                        score=100,
                        anomalies=tuple(anomalies),
                    )
                )

        candidates = self.rank_candidates(extracted)
        verdict = decide(candidates, self.config.suggest_threshold)

        if verdict == Verdict.NO_MATCH:
            logger.warning(
                f"No expected invoice for tax_id={extracted.tax_id} "
                f"number={extracted.full_number}"
            )
            return self._finish(ReconciliationOutcome(verdict=verdict, anomalies=tuple(anomalies)))

        best = candidates[0]
        if verdict == Verdict.SUGGESTED:
            logger.info(
                f"Suggesting expected invoice {best.record.id} "
                f"(score {best.score}, matched {list(best.matched_fields)})"
            )
            return self._finish(
                ReconciliationOutcome(
                    verdict=verdict,
                    record=best.record,
                    score=best.score,
                    candidates=tuple(candidates),
                    anomalies=tuple(anomalies),
                )
            )

        logger.info(
            f"Best candidate scored {best.score} < {self.config.suggest_threshold}; "
            f"{len(candidates)} candidates left for manual review"
        )
        return self._finish(
            ReconciliationOutcome(
                verdict=verdict,
                candidates=tuple(candidates),
                anomalies=tuple(anomalies),
            )
        )

    def _finish(self, outcome: ReconciliationOutcome) -> ReconciliationOutcome:
        reconciliation_verdicts_total.labels(verdict=outcome.verdict.value).inc()
        return outcome

    def accept(
        self,
        outcome: ReconciliationOutcome,
        document_id: str,
        record_id: int | None = None,
    ) -> ExpectedInvoiceRecord:
        """Link a document to the outcome's record (or a chosen candidate).

        The catalog re-checks that the record is still pending while applying
        the claim, so concurrent documents cannot both claim it.

        Args:
            outcome: Result of ``reconcile``
            document_id: Identifier of the scanned document
            record_id: Candidate picked by a reviewer; defaults to ``outcome.record``

        Returns:
            The record after the transition to matched

        Raises:
            ValueError: If there is nothing to accept or record_id is not a candidate
            RecordNotPendingError: If the record was claimed or disposed meanwhile
        """
        if record_id is None:
            if outcome.record is None or outcome.score is None:
                raise ValueError(f"Nothing to accept for verdict {outcome.verdict}")
            target, confidence = outcome.record.id, outcome.score
        else:
            chosen = next((c for c in outcome.candidates if c.record.id == record_id), None)
            if chosen is None:
                raise ValueError(f"Record {record_id} is not a candidate of this outcome")
            target, confidence = record_id, chosen.score

        updated = self.catalog.mark_as_matched(target, document_id, confidence)
        logger.info(f"Document {document_id} matched to expected invoice {target}")
        return updated
