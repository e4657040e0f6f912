"""Receipt type classification from document text.

The numeric code printed on electronic receipts is issued by the tax
authority and survives OCR far better than the large receipt letter, so it
is always tried first. Text patterns ("Factura C", "Nota de Crédito B",
letters glued to numeric prefixes in badly parsed PDFs) are the fallback.
"""

import logging
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict

from fiscal.doctypes.table import DocumentKind, DocumentTypeCode, DocumentTypeTable

logger = logging.getLogger(__name__)

# Patterns that expose the numeric code, most specific first.
CODE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # "A" on one line, "Código: 01" on the next
    re.compile(
        r"(?:^|\s)(?P<letter>[ABCEM])\s*[\r\n]+\s*(?i:c[oó]d(?:igo)?)\.?\s*:?\s*(?P<code>\d{1,3})\b",
        re.MULTILINE,
    ),
    # "01Código" (code glued before the word)
    re.compile(r"(?P<code>\d{1,3})(?i:c[oó]d(?:igo)?)"),
    # "Cod. 11", "Código: 011", "CODIGO:\n 06"
    re.compile(r"\b(?i:c[oó]d(?:igo)?)\.?\s*:?\s*(?P<code>\d{1,3})\b"),
    # "11 - Factura C"
    re.compile(
        r"\b(?P<code>\d{1,3})\s*[-–]\s*"
        r"(?i:factura|nota\s+de\s+(?:cr[eé]dito|d[eé]bito))\s+[ABCEM]\b"
    ),
    # "Tipo | 11"
    re.compile(r"\b(?i:tipo)\s*[:|]?\s*(?P<code>\d{1,3})\b"),
    # "Comprobante: 11", "Comp.: 11"
    re.compile(r"\b(?i:comp(?:robante)?)\.?\s*:?\s*(?P<code>\d{1,3})\b"),
)

_GLUED_PREFIXES = r"(?:001|011|006|019|201|206|211)"

# Letter patterns with the kind they imply, in priority order.
TEXT_PATTERNS: tuple[tuple[re.Pattern[str], DocumentKind], ...] = (
    (re.compile(rf"\b(?P<letter>[ABCEM])(?:FACTURA|{_GLUED_PREFIXES})\b"), DocumentKind.INVOICE),
    (
        re.compile(r"(?i:codigo):\s*[\r\n]+\s*-?\s*[\r\n]+\s*(?P<letter>[ABCEM])\s*[\r\n]"),
        DocumentKind.INVOICE,
    ),
    (re.compile(rf"\b(?P<letter>[ABCEM]){_GLUED_PREFIXES}(?:NRO|N°|Nº)"), DocumentKind.INVOICE),
    (
        re.compile(r"\b(?i:nota\s+de\s+cr[eé]dito)\s+(?P<letter>[ABCEM])\b"),
        DocumentKind.CREDIT_NOTE,
    ),
    (re.compile(r"\bN\.?\s?C\.?\s+(?P<letter>[ABCEM])\b"), DocumentKind.CREDIT_NOTE),
    (
        re.compile(r"\b(?i:nota\s+de\s+d[eé]bito)\s+(?P<letter>[ABCEM])\b"),
        DocumentKind.DEBIT_NOTE,
    ),
    (re.compile(r"\bN\.?\s?D\.?\s+(?P<letter>[ABCEM])\b"), DocumentKind.DEBIT_NOTE),
    (re.compile(r"\b(?i:factura)\s+(?P<letter>[ABCEM])\b"), DocumentKind.INVOICE),
    (re.compile(r"\b(?i:comprobante)\s+(?P<letter>[ABCEM])(?:\s|$|-)"), DocumentKind.INVOICE),
    (re.compile(r"\bFC\s+(?P<letter>[ABCEM])\b"), DocumentKind.INVOICE),
)


class DocumentTypeMatch(BaseModel):
    """Classifier verdict and how it was reached."""

    model_config = ConfigDict(frozen=True)

    document_type: DocumentTypeCode
    method: Literal["CODE", "TEXT"]

    @property
    def code(self) -> int:
        return self.document_type.code

    @property
    def letter(self) -> str:
        return self.document_type.letter

    @property
    def kind(self) -> DocumentKind:
        return self.document_type.kind


class DocumentTypeClassifier:
    """Maps numeric codes or text patterns to a receipt type.

    Attributes:
        table: Code table used for lookups (injected, defaults to the shipped table)
    """

    def __init__(self, table: DocumentTypeTable | None = None) -> None:
        self.table = table or DocumentTypeTable.load()

    def from_code(self, code: int | str) -> DocumentTypeCode | None:
        """Exact lookup; string codes lose their leading zeros first."""
        if isinstance(code, str):
            code = code.strip()
            if not code.isdigit():
                return None
            code = int(code)
        return self.table.lookup(code)

    def find_code(self, text: str) -> DocumentTypeCode | None:
        """Return the first numeric code pattern in ``text`` that resolves."""
        for pattern in CODE_PATTERNS:
            for match in pattern.finditer(text):
                found = self.from_code(match.group("code"))
                if found is None:
                    logger.debug(f"Code {match.group('code')} found but not in table")
                    continue
                letter = match.groupdict().get("letter")
                if letter and letter != found.letter:
                    logger.warning(
                        f"Letter {letter} next to code {found.code} disagrees "
                        f"({found.description}); using the code"
                    )
                return found
        return None

    def from_text(self, text: str) -> DocumentTypeCode | None:
        """Fallback: detect the receipt letter and kind from literal phrases."""
        for pattern, kind in TEXT_PATTERNS:
            match = pattern.search(text)
            if match is None:
                continue
            found = self.table.reverse(match.group("letter"), kind)
            if found is not None:
                return found
        return None

    def extract_with_fallback(self, text: str) -> DocumentTypeMatch | None:
        """Classify a document, preferring the numeric code over text.

        When both a code and a textual letter are present and disagree, the
        code wins and the disagreement is logged.
        """
        by_code = self.find_code(text)
        if by_code is not None:
            by_text = self.from_text(text)
            if by_text is not None and by_text.letter != by_code.letter:
                logger.warning(
                    f"Text suggests letter {by_text.letter} but code {by_code.code} "
                    f"says {by_code.letter}; numeric code wins"
                )
            logger.info(f"Document type by code: {by_code.description}")
            return DocumentTypeMatch(document_type=by_code, method="CODE")

        by_text = self.from_text(text)
        if by_text is not None:
            logger.info(f"Document type by text: {by_text.description}")
            return DocumentTypeMatch(document_type=by_text, method="TEXT")

        logger.debug("No document type found")
        return None
