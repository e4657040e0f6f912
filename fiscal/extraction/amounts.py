"""Total-amount candidates in Argentine number format.

Amounts use ``.`` as thousands separator and ``,`` as decimal separator
(``1.965.244,64``). Labeled totals are tried first, in priority order; when
no label matches, every amount in the document is scored and the best one
wins.
"""

import logging
import re
from decimal import Decimal, InvalidOperation

from fiscal.extraction.profiles import AmountWeights
from fiscal.shared.scoring import ExtractedField

logger = logging.getLogger(__name__)

AMOUNT = r"(?:\d{1,3}(?:\.\d{3})+|\d+),\d{2}(?!\d)"

LABELED_TOTAL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"importe\s+total\s*:?\s*\$?\s*({AMOUNT})", re.IGNORECASE),
    re.compile(rf"total\s+a\s+pagar\s*:?\s*\$?\s*({AMOUNT})", re.IGNORECASE),
    re.compile(rf"\btotal\s*:\s*\$?\s*({AMOUNT})", re.IGNORECASE),
    re.compile(rf"\bTOTAL\s+\$?\s*({AMOUNT})\s*$", re.MULTILINE),
)

ANY_AMOUNT = re.compile(rf"(?<![\d.,])(\$\s*)?({AMOUNT})")

# Tolerates common OCR substitutions (0/O, 1/I/L, 4/A, 7/T).
TOTAL_VOCABULARY = re.compile(
    r"[T7][O0][T7][A4@][L1I]|import[e3]|mont[o0]|a\s+pagar",
    re.IGNORECASE,
)


def parse_amount(raw: str) -> Decimal | None:
    """Parse ``1.965.244,64`` into ``Decimal('1965244.64')``."""
    cleaned = raw.strip().lstrip("$").strip().replace(".", "").replace(",", ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def find_labeled_total(text: str, weights: AmountWeights) -> ExtractedField[Decimal] | None:
    """Return the first labeled total at or above the plausible minimum."""
    for priority, pattern in enumerate(LABELED_TOTAL_PATTERNS):
        for match in pattern.finditer(text):
            value = parse_amount(match.group(1))
            if value is None or value < weights.minimum_total:
                logger.debug(f"Labeled total {match.group(1)} below minimum, skipped")
                continue
            return ExtractedField(
                value=value,
                start=match.start(1),
                end=match.end(1),
                score=100.0 - priority,
                reasons=(f"label_pattern_{priority}",),
            )
    return None


def find_amount_candidates(text: str, weights: AmountWeights) -> list[ExtractedField[Decimal]]:
    """Score every plausible amount in the document.

    Returns:
        Candidates, best first (ties prefer the larger value, then the later one)
    """
    found: list[tuple[Decimal, int, int, bool]] = []
    for match in ANY_AMOUNT.finditer(text):
        value = parse_amount(match.group(2))
        if value is None or value < weights.minimum_total:
            continue
        found.append((value, match.start(2), match.end(2), match.group(1) is not None))

    if not found:
        return []

    largest = max(value for value, _, _, _ in found)
    tail_start = len(text) * (1 - weights.tail_fraction)
    candidates: list[ExtractedField[Decimal]] = []

    for value, start, end, has_sign in found:
        score = 0.0
        reasons: list[str] = []

        if start >= tail_start:
            score += weights.in_tail
            reasons.append(f"in_tail{weights.in_tail:+g}")

        line_start = text.rfind("\n", 0, start) + 1
        line_end = text.find("\n", end)
        line = text[line_start : line_end if line_end != -1 else len(text)]
        if TOTAL_VOCABULARY.search(line):
            score += weights.total_vocabulary_on_line
            reasons.append(f"total_vocabulary{weights.total_vocabulary_on_line:+g}")

        if has_sign:
            score += weights.currency_sign
            reasons.append(f"currency_sign{weights.currency_sign:+g}")

        if value == largest:
            score += weights.largest_value
            reasons.append(f"largest{weights.largest_value:+g}")

        magnitude = max(value.adjusted(), 0)
        bonus = magnitude * weights.per_order_of_magnitude
        score += bonus
        reasons.append(f"magnitude{bonus:+g}")

        candidates.append(
            ExtractedField(value=value, start=start, end=end, score=score, reasons=tuple(reasons))
        )

    candidates.sort(key=lambda c: (-c.score, -c.value, -c.start))
    for candidate in candidates:
        logger.debug(
            f"Amount candidate {candidate.value}: {candidate.score} ({candidate.rationale})"
        )
    return candidates


def find_total(text: str, weights: AmountWeights) -> ExtractedField[Decimal] | None:
    """Labeled total if any, otherwise the best heuristic candidate."""
    labeled = find_labeled_total(text, weights)
    if labeled is not None:
        return labeled
    candidates = find_amount_candidates(text, weights)
    return candidates[0] if candidates else None
