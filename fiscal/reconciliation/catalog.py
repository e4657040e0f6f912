"""Expected-invoice catalog.

The catalog is owned by the persistence layer (records are imported from
the tax authority's export); reconciliation only needs the narrow
interface below. ``InMemoryCatalog`` implements it behind a lock and is
what tests and the evaluation pipeline use.

Status lifecycle:
    pending -> matched        (reconciliation claim)
    pending -> manual         (human disposition)
    pending -> ignored        (human disposition)
    pending -> discrepancy    (human disposition)
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from fiscal.doctypes.table import Letter
from fiscal.identifiers.cuit import TaxId, normalize

logger = logging.getLogger(__name__)


class RecordNotFoundError(LookupError):
    """No expected-invoice record with the given id."""


class RecordNotPendingError(RuntimeError):
    """The record left ``pending`` before the claim could be applied."""


class ExpectedInvoiceStatus(StrEnum):
    PENDING = "pending"
    MATCHED = "matched"
    DISCREPANCY = "discrepancy"
    MANUAL = "manual"
    IGNORED = "ignored"


class ExpectedInvoiceRecord(BaseModel):
    """A receipt the organization is expected to receive.

    Keyed by (tax_id, letter, point_of_sale, sequence_number); the key is
    unique among pending records.

    Attributes:
        id: Catalog identifier
        tax_id: Issuer CUIT (normalized on construction)
        letter: Receipt letter
        point_of_sale: Issuing terminal number
        sequence_number: Per-point-of-sale counter
        issue_date: Emission date from the export
        total: Total amount from the export
        status: Lifecycle status
        matched_document_id: Linked scanned document, once matched
        match_confidence: Score of the accepted match (100 for exact)
        emitter_name: Issuer business name from the export
        notes: Free text left by human disposition
        updated_at: Last status change
    """

    model_config = ConfigDict(frozen=True)

    id: int
    tax_id: TaxId
    letter: Letter
    point_of_sale: int = Field(..., ge=0)
    sequence_number: int = Field(..., ge=0)
    issue_date: date | None = None
    total: Decimal | None = None
    status: ExpectedInvoiceStatus = ExpectedInvoiceStatus.PENDING
    matched_document_id: str | None = None
    match_confidence: int | None = Field(None, ge=0, le=100)
    emitter_name: str | None = None
    notes: str | None = None
    updated_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str, int, int]:
        return (self.tax_id, self.letter, self.point_of_sale, self.sequence_number)


class CandidateQuery(BaseModel):
    """Filter for ``find_candidates``.

    Every filter is optional; ``None`` means "do not filter on this".
    Intervals are inclusive.
    """

    model_config = ConfigDict(frozen=True)

    tax_id: TaxId | None = None
    date_from: date | None = None
    date_to: date | None = None
    total_min: Decimal | None = None
    total_max: Decimal | None = None
    point_of_sale: int | None = None
    sequence_number: int | None = None
    statuses: tuple[ExpectedInvoiceStatus, ...] = (ExpectedInvoiceStatus.PENDING,)
    limit: int | None = Field(None, ge=1)

    def accepts(self, record: ExpectedInvoiceRecord) -> bool:
        if record.status not in self.statuses:
            return False
        if self.tax_id is not None and record.tax_id != self.tax_id:
            return False
        if self.point_of_sale is not None and record.point_of_sale != self.point_of_sale:
            return False
        if self.sequence_number is not None and record.sequence_number != self.sequence_number:
            return False
        if self.date_from is not None or self.date_to is not None:
            if record.issue_date is None:
                return False
            if self.date_from is not None and record.issue_date < self.date_from:
                return False
            if self.date_to is not None and record.issue_date > self.date_to:
                return False
        if self.total_min is not None or self.total_max is not None:
            if record.total is None:
                return False
            if self.total_min is not None and record.total < self.total_min:
                return False
            if self.total_max is not None and record.total > self.total_max:
                return False
        return True


def _newest_first(record: ExpectedInvoiceRecord) -> tuple[bool, int, int]:
    # Undated records sort last; ties fall back to ascending id.
    ordinal = record.issue_date.toordinal() if record.issue_date else 0
    return (record.issue_date is None, -ordinal, record.id)


class ExpectedInvoiceCatalog(ABC):
    """Interface the persistence layer provides to reconciliation.

    Implementations must apply every status transition atomically with the
    ``pending`` check, so two documents cannot claim the same record.
    """

    @abstractmethod
    def get(self, record_id: int) -> ExpectedInvoiceRecord:
        """Fetch a record.

        Raises:
            RecordNotFoundError: If no record has this id
        """

    @abstractmethod
    def find_by_key(
        self,
        tax_id: str,
        letter: str,
        point_of_sale: int,
        sequence_number: int,
        statuses: tuple[ExpectedInvoiceStatus, ...] = (ExpectedInvoiceStatus.PENDING,),
    ) -> list[ExpectedInvoiceRecord]:
        """All records with the given 4-tuple key, by ascending id."""

    @abstractmethod
    def find_candidates(self, query: CandidateQuery) -> list[ExpectedInvoiceRecord]:
        """Records accepted by ``query``, newest issue date first."""

    @abstractmethod
    def mark_as_matched(
        self, record_id: int, document_id: str, confidence: int
    ) -> ExpectedInvoiceRecord:
        """Claim a pending record for a document.

        Raises:
            RecordNotFoundError: If no record has this id
            RecordNotPendingError: If the record is no longer pending
        """

    @abstractmethod
    def mark_as_manual(self, record_id: int, notes: str | None = None) -> ExpectedInvoiceRecord:
        pass

    @abstractmethod
    def mark_as_ignored(self, record_id: int, notes: str | None = None) -> ExpectedInvoiceRecord:
        pass

    @abstractmethod
    def mark_as_discrepancy(
        self, record_id: int, notes: str | None = None
    ) -> ExpectedInvoiceRecord:
        pass

    @abstractmethod
    def count_by_status(self) -> dict[ExpectedInvoiceStatus, int]:
        pass


class InMemoryCatalog(ExpectedInvoiceCatalog):
    """Thread-safe in-memory catalog.

    Records are immutable; every transition stores a new copy under the lock.
    """

    def __init__(self, records: Iterable[ExpectedInvoiceRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._records: dict[int, ExpectedInvoiceRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: ExpectedInvoiceRecord) -> None:
        """Insert a record.

        Raises:
            ValueError: If the id is already present
        """
        with self._lock:
            if record.id in self._records:
                raise ValueError(f"Duplicate expected-invoice id: {record.id}")
            self._records[record.id] = record

    def list_records(self) -> list[ExpectedInvoiceRecord]:
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.id)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: int) -> ExpectedInvoiceRecord:
        with self._lock:
            return self._get_locked(record_id)

    def _get_locked(self, record_id: int) -> ExpectedInvoiceRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise RecordNotFoundError(f"Expected invoice {record_id} not found") from None

    def find_by_key(
        self,
        tax_id: str,
        letter: str,
        point_of_sale: int,
        sequence_number: int,
        statuses: tuple[ExpectedInvoiceStatus, ...] = (ExpectedInvoiceStatus.PENDING,),
    ) -> list[ExpectedInvoiceRecord]:
        key = (normalize(tax_id), letter, point_of_sale, sequence_number)
        with self._lock:
            found = [r for r in self._records.values() if r.key == key and r.status in statuses]
        return sorted(found, key=lambda r: r.id)

    def find_candidates(self, query: CandidateQuery) -> list[ExpectedInvoiceRecord]:
        with self._lock:
            found = [r for r in self._records.values() if query.accepts(r)]
        found.sort(key=_newest_first)
        if query.limit is not None:
            found = found[: query.limit]
        return found

    def _transition(
        self,
        record_id: int,
        status: ExpectedInvoiceStatus,
        **changes: object,
    ) -> ExpectedInvoiceRecord:
        with self._lock:
            current = self._get_locked(record_id)
            if current.status != ExpectedInvoiceStatus.PENDING:
                raise RecordNotPendingError(
                    f"Expected invoice {record_id} is {current.status}, not pending"
                )
            updated = current.model_copy(
                update={"status": status, "updated_at": datetime.now(UTC), **changes}
            )
            self._records[record_id] = updated
        logger.info(f"Expected invoice {record_id}: pending -> {status}")
        return updated

    def mark_as_matched(
        self, record_id: int, document_id: str, confidence: int
    ) -> ExpectedInvoiceRecord:
        return self._transition(
            record_id,
            ExpectedInvoiceStatus.MATCHED,
            matched_document_id=document_id,
            match_confidence=confidence,
        )

    def mark_as_manual(self, record_id: int, notes: str | None = None) -> ExpectedInvoiceRecord:
        return self._transition(record_id, ExpectedInvoiceStatus.MANUAL, notes=notes)

    def mark_as_ignored(self, record_id: int, notes: str | None = None) -> ExpectedInvoiceRecord:
        return self._transition(record_id, ExpectedInvoiceStatus.IGNORED, notes=notes)

    def mark_as_discrepancy(
        self, record_id: int, notes: str | None = None
    ) -> ExpectedInvoiceRecord:
        return self._transition(record_id, ExpectedInvoiceStatus.DISCREPANCY, notes=notes)

    def count_by_status(self) -> dict[ExpectedInvoiceStatus, int]:
        counts = {status: 0 for status in ExpectedInvoiceStatus}
        with self._lock:
            for record in self._records.values():
                counts[record.status] += 1
        return counts
