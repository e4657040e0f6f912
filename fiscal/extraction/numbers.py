"""Document number (letter, point of sale, sequence) extraction.

Patterns are tried in priority order and the first hit wins. They tolerate
inconsistent separators and spaces inserted by OCR.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Each pattern exposes ``pos`` and ``seq`` groups and optionally ``letter``.
NUMBER_PATTERNS: tuple[re.Pattern[str], ...] = (
    # A-00001-00000123, A - 0001 - 00000123
    re.compile(r"\b(?P<letter>[ABCEM])\s*[-–]\s*(?P<pos>\d{4,5})\s*[-–]\s*(?P<seq>\d{8})\b"),
    # A0000100000123
    re.compile(r"\b(?P<letter>[ABCEM])(?P<pos>\d{4,5})(?P<seq>\d{8})\b"),
    # OCR: A 00001 - 000123 (short or spaced sequence)
    re.compile(r"\b(?P<letter>[ABCEM])\s+(?P<pos>\d{4,5})\s*[-–]\s*(?P<seq>\d{6,8})\b"),
    # Punto de Venta: 00002  Comp. Nro: 00000123
    re.compile(
        r"(?i:punto\s+de\s+venta)\s*:?\s*(?P<pos>\d{1,5})\s+"
        r"(?i:comp(?:robante)?)\.?\s*(?i:n(?:ro|[°º]))\.?\s*:?\s*(?P<seq>\d{1,8})\b"
    ),
    # Punto de Venta: 00001 / Número: 00000123, Pto. Vta: 0001 Nro: 00000123
    re.compile(
        r"\b(?i:p(?:un)?to\.?\s*(?:de\s+)?v(?:en)?ta\.?)\s*:?\s*(?P<pos>\d{1,5})\s+"
        r"(?i:n(?:[uú]mero|ro\.?|[°º]))\s*:?\s*(?P<seq>\d{1,8})\b"
    ),
    # Número: 0001-00000123, Nº 00001 - 00000123
    re.compile(
        r"\b(?i:n(?:[uú]mero|ro\.?|[°º]))\s*:?\s*(?P<pos>\d{4,5})\s*[-–\s]\s*(?P<seq>\d{6,8})\b"
    ),
    # 00001-00000123
    re.compile(r"\b(?P<pos>\d{4,5})\s*[-–]\s*(?P<seq>\d{8})\b"),
    # 0000100000123 / 000100000123
    re.compile(r"\b(?P<pos>\d{5})(?P<seq>\d{8})\b"),
    re.compile(r"\b(?P<pos>\d{4})(?P<seq>\d{8})\b"),
)


@dataclass(frozen=True)
class DocumentNumber:
    """Parsed document number and where it was found."""

    point_of_sale: int
    sequence_number: int
    letter: str | None
    start: int
    end: int
    pattern_index: int


def find_document_number(text: str) -> DocumentNumber | None:
    """Return the first document number matched by the prioritized patterns."""
    for index, pattern in enumerate(NUMBER_PATTERNS):
        match = pattern.search(text)
        if match is None:
            continue
        groups = match.groupdict()
        number = DocumentNumber(
            point_of_sale=int(groups["pos"]),
            sequence_number=int(groups["seq"]),
            letter=groups.get("letter"),
            start=match.start(),
            end=match.end(),
            pattern_index=index,
        )
        logger.debug(f"Document number via pattern {index}: {match.group(0)!r}")
        return number
    return None


def format_full_number(letter: str, point_of_sale: int, sequence_number: int) -> str:
    """Render the canonical ``A-00001-00000123`` form."""
    return f"{letter}-{point_of_sale:05d}-{sequence_number:08d}"
