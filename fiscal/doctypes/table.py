"""Document-type code table (government-assigned receipt codes).

The table is versioned configuration data shipped as ``afip_codes.json``.
New codes are added by editing the data file, never the code. Tests and
callers may load or build an alternate table and inject it.
"""

import json
import logging
from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_TABLE_PATH = Path(__file__).with_name("afip_codes.json")

Letter = Literal["A", "B", "C", "E", "M"]


class DocumentKind(StrEnum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"


class DocumentTypeCode(BaseModel):
    """One receipt type: numeric code plus its (letter, kind) meaning.

    Attributes:
        code: Government-assigned numeric code (e.g. 11)
        letter: Receipt letter printed on the document
        kind: Invoice, credit note or debit note
        short_code: Compact kind code (FAC, NCR, NDB)
        description: Human-readable name (e.g. "Factura C")
    """

    model_config = ConfigDict(frozen=True)

    code: int = Field(..., ge=1)
    letter: Letter
    kind: DocumentKind
    short_code: str
    description: str


class TableData(BaseModel):
    """On-disk shape of the code table."""

    version: str
    electronic_offset: int = 200
    electronic_range: tuple[int, int] = (201, 299)
    types: list[DocumentTypeCode]


class DocumentTypeTable:
    """Immutable lookup over a set of document-type codes.

    Codes inside ``electronic_range`` (electronic credit invoices) resolve to
    the base code ``code - electronic_offset`` and keep their own number.
    """

    def __init__(self, data: TableData) -> None:
        self.version = data.version
        self._offset = data.electronic_offset
        self._electronic_range = data.electronic_range
        self._by_code: dict[int, DocumentTypeCode] = {}
        self._by_meaning: dict[tuple[str, DocumentKind], DocumentTypeCode] = {}

        for entry in data.types:
            if entry.code in self._by_code:
                raise ValueError(f"Duplicate document-type code {entry.code} in table")
            self._by_code[entry.code] = entry
            key = (entry.letter, entry.kind)
            current = self._by_meaning.get(key)
            if current is None or entry.code < current.code:
                self._by_meaning[key] = entry

    @classmethod
    def load(cls, path: Path | None = None) -> "DocumentTypeTable":
        """Load a table from JSON (defaults to the shipped table)."""
        path = path or DEFAULT_TABLE_PATH
        with open(path, encoding="utf-8") as f:
            data = TableData.model_validate(json.load(f))
        logger.debug(f"Loaded document-type table v{data.version} ({len(data.types)} codes)")
        return cls(data)

    def lookup(self, code: int) -> DocumentTypeCode | None:
        """Exact lookup, with electronic codes folded onto their base code."""
        entry = self._by_code.get(code)
        if entry is not None:
            return entry

        low, high = self._electronic_range
        if low <= code <= high:
            base = self._by_code.get(code - self._offset)
            if base is not None:
                return base.model_copy(
                    update={"code": code, "description": f"{base.description} (Electrónica)"}
                )
        return None

    def reverse(self, letter: str, kind: DocumentKind) -> DocumentTypeCode | None:
        """Find the base code for a (letter, kind) pair."""
        return self._by_meaning.get((letter.upper(), kind))

    def __contains__(self, code: object) -> bool:
        return isinstance(code, int) and self.lookup(code) is not None

    def __len__(self) -> int:
        return len(self._by_code)
