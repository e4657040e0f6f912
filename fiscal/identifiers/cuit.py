"""Argentine tax identifier (CUIT) validation and contextual extraction.

A CUIT is 11 digits: a 2-digit prefix that classifies the holder, an
8-digit body, and a check digit computed with a weighted modulo-11 sum over
the first 10 digits. Canonical form is ``PP-DDDDDDDD-C``.

Documents usually carry two valid CUITs (issuer and recipient). Without
layout information the only robust discriminator is the vocabulary around
each occurrence, so candidates are ranked by a keyword rule table.
"""

import logging
import re
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator

from fiscal.shared.scoring import ExtractedField, KeywordRule, score_window

logger = logging.getLogger(__name__)

MULTIPLIERS = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)

NATURAL_PREFIXES = frozenset({"20", "23", "24", "27"})
LEGAL_PREFIXES = frozenset({"30", "33", "34"})

_SEPARATORS = re.compile(r"[-\s]")
_CANDIDATE = re.compile(r"\b\d{2}[-\s]?\d{8}[-\s]?\d\b")

CONTEXT_WINDOW = 200
POSITION_WEIGHT = 5.0


class InvalidTaxIdError(ValueError):
    """Base error for values that are not a valid CUIT."""


class InvalidFormatError(InvalidTaxIdError):
    """Wrong length or non-digit characters."""


class ChecksumMismatchError(InvalidTaxIdError):
    """Check digit does not match the weighted modulo-11 sum."""


class HolderType(StrEnum):
    NATURAL = "NATURAL"
    LEGAL = "LEGAL"
    UNKNOWN = "UNKNOWN"


# Vocabulary that identifies the issuer block of a receipt.
ISSUER_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        "tax_id_label",
        r"C\.?\s?U\.?\s?I\.?\s?T\.?(?:\s*N[°ºo]\.?)?\s*:?",
        25,
        max_distance=3,
        direction="before",
    ),
    KeywordRule("issuer_code", r"c[oó]d(?:igo|\.)?\s*(?:de\s+)?emisor", 20, max_distance=80),
    KeywordRule("gross_income", r"ingresos\s+brutos|\bII\.?\s?BB\b", 15, max_distance=160),
    KeywordRule("activity_start", r"inicio\s+de\s+(?:las\s+)?actividad", 15, max_distance=160),
    KeywordRule("business_address", r"domicilio\s+comercial", 10, max_distance=120),
    KeywordRule("issuer", r"\bemisor\b", 10, max_distance=100),
)

# Vocabulary that identifies the customer / counterparty block.
RECIPIENT_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        "salutation",
        r"\bse[ñn]or(?:es|a)?\b|\bsr(?:es|a)?\.",
        -25,
        max_distance=160,
        direction="before",
    ),
    KeywordRule(
        "customer",
        r"\bcliente\b|\bcomprador\b|\bdestinatario\b|\badquirente\b|\breceptor\b",
        -25,
        max_distance=160,
        direction="before",
    ),
    KeywordRule(
        "recipient_name",
        r"apellido\s+y\s+nombre",
        -20,
        max_distance=120,
        direction="before",
    ),
    KeywordRule("bill_to", r"facturar\s+a\b", -20, max_distance=120, direction="before"),
)

DEFAULT_CONTEXT_RULES: tuple[KeywordRule, ...] = ISSUER_RULES + RECIPIENT_RULES


def _digits(raw: str) -> str:
    return _SEPARATORS.sub("", raw)


def check_digit(base: str) -> int:
    """Compute the check digit for the first 10 digits of a CUIT."""
    total = sum(int(d) * m for d, m in zip(base, MULTIPLIERS, strict=True))
    remainder = total % 11
    if remainder == 0:
        return 0
    if remainder == 1:
        return 9
    return 11 - remainder


def validate(raw: str) -> bool:
    """Return whether ``raw`` is a valid CUIT in any separator style.

    Example:
        >>> validate("30-71057829-6")
        True
        >>> validate("30-71057829-5")
        False
    """
    cleaned = _digits(raw)
    if len(cleaned) != 11 or not cleaned.isascii() or not cleaned.isdigit():
        return False
    return check_digit(cleaned[:10]) == int(cleaned[10])


def normalize(raw: str) -> str:
    """Normalize a CUIT to ``PP-DDDDDDDD-C``.

    Raises:
        InvalidFormatError: If length or charset is wrong
        ChecksumMismatchError: If the check digit does not match
    """
    cleaned = _digits(raw)
    if len(cleaned) != 11 or not cleaned.isascii() or not cleaned.isdigit():
        raise InvalidFormatError(f"Invalid CUIT format: {raw!r}")
    if check_digit(cleaned[:10]) != int(cleaned[10]):
        raise ChecksumMismatchError(f"CUIT check digit mismatch: {raw!r}")
    return f"{cleaned[:2]}-{cleaned[2:10]}-{cleaned[10]}"


def classify_holder(tax_id: str) -> HolderType:
    """Classify the holder (natural or legal person) from the 2-digit prefix."""
    prefix = _digits(tax_id)[:2]
    if prefix in NATURAL_PREFIXES:
        return HolderType.NATURAL
    if prefix in LEGAL_PREFIXES:
        return HolderType.LEGAL
    return HolderType.UNKNOWN


# Pydantic type: any model field declared as TaxId is normalized on input
# and rejects invalid identifiers with a ValidationError.
TaxId = Annotated[str, AfterValidator(normalize)]


def extract_candidates_with_context(
    text: str,
    rules: tuple[KeywordRule, ...] = DEFAULT_CONTEXT_RULES,
) -> list[ExtractedField[str]]:
    """Find every valid CUIT in ``text`` and rank them by surrounding context.

    Invalid matches are dropped. Each candidate's keyword search stops at
    the neighbouring candidates, so one block's vocabulary never scores the
    identifier of another. Repeated occurrences of the same CUIT keep
    their best score and their first position. Earlier occurrences get a
    small position bonus so that, all else equal, the issuer header wins.

    Args:
        text: Document text
        rules: Keyword rule table (issuer vocabulary positive, recipient negative)

    Returns:
        Candidates sorted by score descending; ties keep first-seen order
    """
    best: dict[str, ExtractedField[str]] = {}
    order: list[str] = []
    length = max(len(text), 1)

    matches = [m for m in _CANDIDATE.finditer(text) if validate(m.group(0))]

    for i, match in enumerate(matches):
        tax_id = normalize(match.group(0))
        lo = matches[i - 1].end() if i > 0 else 0
        hi = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        window = score_window(
            text, match.start(), match.end(), rules, window=CONTEXT_WINDOW, lo=lo, hi=hi
        )
        position_bonus = round(POSITION_WEIGHT * (1 - match.start() / length), 2)
        reasons = window.reasons + (f"position{position_bonus:+g}",)
        candidate = ExtractedField(
            value=tax_id,
            start=match.start(),
            end=match.end(),
            score=window.score + position_bonus,
            reasons=reasons,
        )
        logger.debug(f"CUIT candidate {tax_id} at {match.start()}: {candidate.score} {reasons}")

        previous = best.get(tax_id)
        if previous is None:
            order.append(tax_id)
            best[tax_id] = candidate
        elif candidate.score > previous.score:
            best[tax_id] = ExtractedField(
                value=tax_id,
                start=previous.start,
                end=previous.end,
                score=candidate.score,
                reasons=candidate.reasons,
            )

    ranked = [best[tax_id] for tax_id in order]
    ranked.sort(key=lambda c: -c.score)
    return ranked
