"""Issue-date candidates.

Every date mention in the text becomes a candidate. Its base score depends
on how it is introduced (an explicit issuance label, a generic "Fecha:"
label, a month name, or nothing), and nearby vocabulary pushes it up
(issuance wording, invoice-number markers) or down (due dates, CAE
expiration, billing periods, start-of-activity dates). Dates far in the past
are usually registration dates and are penalized too.
"""

import logging
import re
from datetime import date
from functools import lru_cache

from fiscal.extraction.profiles import DateWeights
from fiscal.shared.scoring import ExtractedField, KeywordRule, score_window

logger = logging.getLogger(__name__)

MONTHS = {
    "ene": 1,
    "feb": 2,
    "mar": 3,
    "abr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "ago": 8,
    "sep": 9,
    "set": 9,
    "oct": 10,
    "nov": 11,
    "dic": 12,
}

NUMERIC_DATE = re.compile(r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})(?!\d)")
MONTH_NAME_DATE = re.compile(
    r"\b(\d{1,2})(?:\s+de\s+|[\s\-/]+)"
    r"((?:ene|feb|mar|abr|may|jun|jul|ago|sep|set|oct|nov|dic)[a-záéíóú]*)\.?"
    r"(?:\s+del?\s+|[\s\-/]+)(\d{4})\b",
    re.IGNORECASE,
)

ISSUANCE_LABEL = re.compile(r"emisi[oó]n[^\d\n]{0,15}$", re.IGNORECASE)
GENERIC_LABEL = re.compile(r"fecha[^\d\n]{0,15}$", re.IGNORECASE)
LABEL_LOOKBACK = 40
CONTEXT_WINDOW = 80


@lru_cache(maxsize=8)
def date_rules(weights: DateWeights) -> tuple[KeywordRule, ...]:
    """Keyword rule table for date candidates under the given weights."""
    return (
        KeywordRule(
            "issuance", r"emisi[oó]n", weights.issuance_nearby, max_distance=25, direction="before"
        ),
        KeywordRule(
            "date_label",
            r"\bfecha\b",
            weights.date_label_nearby,
            max_distance=20,
            direction="before",
        ),
        KeywordRule(
            "number_marker",
            r"\bN(?:ro|[°º])\.?|\bn[uú]mero\b|punto\s+de\s+venta",
            weights.number_marker_nearby,
            max_distance=80,
        ),
        KeywordRule(
            "due_date",
            r"venc(?:imiento|\.)|\bvto\b",
            weights.due_date_nearby,
            max_distance=30,
            direction="before",
        ),
        KeywordRule(
            "cae", r"\bC\.?A\.?E\b", weights.cae_nearby, max_distance=40, direction="before"
        ),
        KeywordRule(
            "period",
            r"per[ií]odo|\bdesde\b|\bhasta\b|v[aá]lid[oa]",
            weights.period_nearby,
            max_distance=40,
            direction="before",
        ),
        KeywordRule(
            "activity_start",
            r"inicio\s+de\s+(?:las\s+)?actividad",
            weights.activity_start_nearby,
            max_distance=60,
            direction="before",
        ),
    )


def _to_date(day: str, month: int, year: str) -> date | None:
    full_year = int(year)
    if len(year) == 2:
        full_year += 2000
    try:
        return date(full_year, month, int(day))
    except ValueError:
        return None


def _base_score(
    text: str, start: int, is_month_name: bool, weights: DateWeights
) -> tuple[float, str]:
    before = text[max(0, start - LABEL_LOOKBACK) : start]
    if ISSUANCE_LABEL.search(before):
        return weights.issuance_label, "issuance_label"
    if GENERIC_LABEL.search(before):
        return weights.generic_label, "generic_label"
    if is_month_name:
        return weights.month_name, "month_name"
    return weights.bare, "bare"


def find_date_candidates(
    text: str,
    weights: DateWeights,
    reference_date: date,
) -> list[ExtractedField[date]]:
    """Scan ``text`` for date mentions and score each one.

    Args:
        text: Document text
        weights: Profile date weights
        reference_date: Processing date used for the age penalty

    Returns:
        Candidates, best first (ties prefer the most recent date, then the
        earliest position)
    """
    found: list[tuple[date, int, int, bool]] = []
    for match in NUMERIC_DATE.finditer(text):
        parsed = _to_date(match.group(1), int(match.group(2)), match.group(3))
        if parsed is not None:
            found.append((parsed, match.start(), match.end(), False))
    for match in MONTH_NAME_DATE.finditer(text):
        month = MONTHS.get(match.group(2)[:3].lower())
        parsed = _to_date(match.group(1), month, match.group(3)) if month else None
        if parsed is not None:
            found.append((parsed, match.start(), match.end(), True))

    occurrences: dict[date, int] = {}
    for value, _, _, _ in found:
        occurrences[value] = occurrences.get(value, 0) + 1

    rules = date_rules(weights)
    candidates: list[ExtractedField[date]] = []
    for value, start, end, is_month_name in found:
        base, family = _base_score(text, start, is_month_name, weights)
        context = score_window(text, start, end, rules, window=CONTEXT_WINDOW)
        score = base + context.score
        reasons = [f"{family}{base:+g}", *context.reasons]

        repeats = min(occurrences[value] - 1, weights.max_repetitions)
        if repeats > 0:
            score += repeats * weights.repetition
            reasons.append(f"repeated_x{repeats}{repeats * weights.repetition:+g}")

        age = (reference_date - value).days
        if age > weights.max_age_days:
            score += weights.too_old
            reasons.append(f"too_old{weights.too_old:+g}")
        elif -age > weights.max_future_days:
            score += weights.future
            reasons.append(f"future{weights.future:+g}")

        candidates.append(
            ExtractedField(value=value, start=start, end=end, score=score, reasons=tuple(reasons))
        )

    candidates.sort(key=lambda c: (-c.score, -c.value.toordinal(), c.start))
    for candidate in candidates:
        logger.debug(f"Date candidate {candidate.value}: {candidate.score} ({candidate.rationale})")
    return candidates
